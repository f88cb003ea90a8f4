# app/db/models/doctor.py

from __future__ import annotations
from datetime import datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.session import Base, BigIntPK


class Doctor(Base):
    __tablename__ = "doctors"
    __table_args__ = (
        sa.Index("ix_doctors_active_verified", "is_active", "is_verified"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(80), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    is_verified: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    @property
    def display_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(80), nullable=False)


class DoctorPatient(Base):
    """Care relationship an appointment hangs off."""
    __tablename__ = "doctor_patients"
    __table_args__ = (
        sa.Index("ix_doctor_patients_doctor_id", "doctor_id"),
        sa.Index("ix_doctor_patients_patient_id", "patient_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    doctor_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    patient_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    assigned_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    doctor: Mapped["Doctor"] = relationship(lazy="joined")
    patient: Mapped["Patient"] = relationship(lazy="joined")
