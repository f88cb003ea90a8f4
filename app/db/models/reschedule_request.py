# app/db/models/reschedule_request.py

from __future__ import annotations
from datetime import datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, BigIntPK

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"
REQUEST_CANCELLED = "cancelled"
REQUEST_STATUSES = (REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED, REQUEST_CANCELLED)


class AppointmentRescheduleRequest(Base):
    __tablename__ = "appointment_reschedule_requests"
    __table_args__ = (
        # at most one pending request per appointment
        sa.Index(
            "uq_reschedule_requests_pending_appointment",
            "appointment_id",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        ),
        sa.Index("ix_reschedule_requests_doctor_id", "doctor_id"),
        sa.Index("ix_reschedule_requests_patient_id", "patient_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    appointment_id: Mapped[int] = mapped_column(
        sa.BigInteger, sa.ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    patient_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    doctor_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    current_date_time: Mapped[datetime] = mapped_column(sa.DateTime, nullable=False)
    requested_slot_id: Mapped[int | None] = mapped_column(
        sa.BigInteger, sa.ForeignKey("time_slots.id", ondelete="SET NULL")
    )
    # a preference only; approval without a slot does not touch the schedule
    requested_date_time: Mapped[datetime | None] = mapped_column(sa.DateTime)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=REQUEST_PENDING)
    requested_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    responded_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))
    responded_by: Mapped[int | None] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="SET NULL"))
    admin_notes: Mapped[str | None] = mapped_column(sa.Text)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
