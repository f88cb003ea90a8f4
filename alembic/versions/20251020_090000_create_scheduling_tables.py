"""create scheduling tables

Revision ID: 20251020_090000
Revises:
Create Date: 2025-10-20 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20251020_090000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps(updated_nullable: bool = False):
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=updated_nullable,
                  server_default=None if updated_nullable else sa.func.now()),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('full_name', sa.String(120), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('role', sa.String(16), nullable=False, server_default='patient'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'doctors',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.BigInteger, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(80), nullable=False),
        sa.Column('last_name', sa.String(80), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_verified', sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_doctors_active_verified', 'doctors', ['is_active', 'is_verified'])

    op.create_table(
        'patients',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.BigInteger, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(80), nullable=False),
        sa.Column('last_name', sa.String(80), nullable=False),
    )

    op.create_table(
        'doctor_patients',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('doctor_id', sa.BigInteger, sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_id', sa.BigInteger, sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_doctor_patients_doctor_id', 'doctor_patients', ['doctor_id'])
    op.create_index('ix_doctor_patients_patient_id', 'doctor_patients', ['patient_id'])

    op.create_table(
        'appointments',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('doctor_patient_id', sa.BigInteger,
                  sa.ForeignKey('doctor_patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('appointment_date_time', sa.DateTime, nullable=False),
        sa.Column('duration', sa.Integer, nullable=False, server_default='30'),
        sa.Column('appointment_type', sa.String(32), nullable=False, server_default='consultation'),
        sa.Column('visit_reason', sa.Text, nullable=False, server_default=''),
        sa.Column('location', sa.JSON),
        sa.Column('status', sa.String(32), nullable=False, server_default='scheduled'),
        sa.Column('notes', sa.Text),
        *_timestamps(),
    )
    op.create_index('ix_appointments_doctor_patient_id', 'appointments', ['doctor_patient_id'])
    op.create_index('ix_appointments_date_time', 'appointments', ['appointment_date_time'])

    op.create_table(
        'availability_templates',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('doctor_id', sa.BigInteger, sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.SmallInteger, nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.Column('slot_duration', sa.Integer, nullable=False, server_default='30'),
        sa.Column('buffer_time', sa.Integer, nullable=False, server_default='0'),
        sa.Column('break_times', sa.JSON, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('doctor_id', 'day_of_week', name='uq_availability_doctor_day'),
    )
    op.create_index('ix_availability_doctor_active', 'availability_templates', ['doctor_id', 'is_active'])

    op.create_table(
        'time_slots',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('doctor_id', sa.BigInteger, sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.Column('slot_type', sa.String(16), nullable=False, server_default='available'),
        sa.Column('appointment_id', sa.BigInteger, sa.ForeignKey('appointments.id', ondelete='SET NULL')),
        sa.Column('is_recurring', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('generated_from', sa.String(16), nullable=False, server_default='template'),
        *_timestamps(updated_nullable=True),
        sa.UniqueConstraint('doctor_id', 'date', 'time', name='uq_time_slots_doctor_date_time'),
    )
    op.create_index('ix_time_slots_doctor_date', 'time_slots', ['doctor_id', 'date'])
    op.create_index('ix_time_slots_doctor_type', 'time_slots', ['doctor_id', 'slot_type'])
    op.create_index('ix_time_slots_appointment_id', 'time_slots', ['appointment_id'])
    op.create_index('ix_time_slots_date_time', 'time_slots', ['date', 'time'])

    op.create_table(
        'doctor_exceptions',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('doctor_id', sa.BigInteger, sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('exception_type', sa.String(16), nullable=False),
        sa.Column('start_time', sa.Time),
        sa.Column('end_time', sa.Time),
        sa.Column('reason', sa.Text, nullable=False, server_default=''),
        sa.Column('affected_slots', sa.JSON, nullable=False),
        sa.Column('is_recurring', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('recurring_pattern', sa.JSON),
        *_timestamps(),
        sa.Column('created_by', sa.BigInteger, sa.ForeignKey('users.id', ondelete='SET NULL')),
    )
    op.create_index('ix_doctor_exceptions_doctor_date', 'doctor_exceptions', ['doctor_id', 'date'])
    op.create_index('ix_doctor_exceptions_doctor_type', 'doctor_exceptions', ['doctor_id', 'exception_type'])

    op.create_table(
        'appointment_reschedule_requests',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('appointment_id', sa.BigInteger,
                  sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_id', sa.BigInteger, sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', sa.BigInteger, sa.ForeignKey('doctors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('current_date_time', sa.DateTime, nullable=False),
        sa.Column('requested_slot_id', sa.BigInteger, sa.ForeignKey('time_slots.id', ondelete='SET NULL')),
        sa.Column('requested_date_time', sa.DateTime),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('responded_at', sa.DateTime(timezone=True)),
        sa.Column('responded_by', sa.BigInteger, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('admin_notes', sa.Text),
        *_timestamps(),
    )
    # one pending request per appointment
    op.create_index(
        'uq_reschedule_requests_pending_appointment',
        'appointment_reschedule_requests',
        ['appointment_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_index('ix_reschedule_requests_doctor_id', 'appointment_reschedule_requests', ['doctor_id'])
    op.create_index('ix_reschedule_requests_patient_id', 'appointment_reschedule_requests', ['patient_id'])

    op.create_table(
        'notifications',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('recipient_id', sa.BigInteger, nullable=False),
        sa.Column('recipient_type', sa.String(16), nullable=False),
        sa.Column('category', sa.String(32), nullable=False, server_default='administrative'),
        sa.Column('type', sa.String(64), nullable=False),
        sa.Column('priority', sa.String(16), nullable=False, server_default='medium'),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('action_url', sa.String(500)),
        sa.Column('related_records', sa.JSON),
        sa.Column('channels', sa.JSON, nullable=False),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('notifications')
    op.drop_table('appointment_reschedule_requests')
    op.drop_table('doctor_exceptions')
    op.drop_table('time_slots')
    op.drop_table('availability_templates')
    op.drop_table('appointments')
    op.drop_table('doctor_patients')
    op.drop_table('patients')
    op.drop_table('doctors')
    op.drop_table('users')
