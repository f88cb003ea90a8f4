# app/db/models/time_slot.py

from __future__ import annotations
import datetime as dt
from datetime import datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, BigIntPK

SLOT_AVAILABLE = "available"
SLOT_BOOKED = "booked"
SLOT_BLOCKED = "blocked"
SLOT_BREAK = "break"
SLOT_TYPES = (SLOT_AVAILABLE, SLOT_BOOKED, SLOT_BLOCKED, SLOT_BREAK)


class TimeSlot(Base):
    """
    One concrete bookable unit of doctor time.

    (doctor_id, date, time) is unique. A slot with an appointment_id is booked,
    except when an exception blocked it under the override policy.
    """
    __tablename__ = "time_slots"
    __table_args__ = (
        sa.UniqueConstraint("doctor_id", "date", "time", name="uq_time_slots_doctor_date_time"),
        sa.Index("ix_time_slots_doctor_date", "doctor_id", "date"),
        sa.Index("ix_time_slots_doctor_type", "doctor_id", "slot_type"),
        sa.Index("ix_time_slots_appointment_id", "appointment_id"),
        sa.Index("ix_time_slots_date_time", "date", "time"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    doctor_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    time: Mapped[dt.time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(sa.Time, nullable=False)
    slot_type: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=SLOT_AVAILABLE)
    appointment_id: Mapped[int | None] = mapped_column(
        sa.BigInteger, sa.ForeignKey("appointments.id", ondelete="SET NULL")
    )
    is_recurring: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    # template | manual | exception
    generated_from: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="template")

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        onupdate=lambda: datetime.now(timezone.utc),
    )
