# app/db/models/appointment.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base, BigIntPK
from app.db.models.doctor import DoctorPatient

APPOINTMENT_TYPES = ("new_patient", "follow_up", "consultation", "procedure", "telemedicine", "emergency")
APPOINTMENT_STATUSES = ("scheduled", "confirmed", "in_progress", "completed", "cancelled", "no_show")
# No further scheduling changes once an appointment reaches one of these
CLOSED_STATUSES = ("completed", "cancelled", "no_show")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        sa.Index("ix_appointments_doctor_patient_id", "doctor_patient_id"),
        sa.Index("ix_appointments_date_time", "appointment_date_time"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    doctor_patient_id: Mapped[int] = mapped_column(
        sa.BigInteger, sa.ForeignKey("doctor_patients.id", ondelete="CASCADE"), nullable=False
    )

    # Clinic local wall clock; slots carry the same local date/time
    appointment_date_time: Mapped[datetime] = mapped_column(sa.DateTime, nullable=False)
    duration: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="30")
    appointment_type: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="consultation")
    visit_reason: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="")
    location: Mapped[dict[str, Any] | None] = mapped_column(sa.JSON)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="scheduled")
    notes: Mapped[str | None] = mapped_column(sa.Text)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relations
    doctor_patient: Mapped["DoctorPatient"] = relationship(lazy="joined")

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES
