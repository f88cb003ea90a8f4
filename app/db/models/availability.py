# app/db/models/availability.py

from __future__ import annotations
from datetime import datetime, time, timezone
from typing import Any
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, BigIntPK


class AvailabilityTemplate(Base):
    """Recurring working hours of one doctor on one weekday (0=Sunday .. 6=Saturday)."""
    __tablename__ = "availability_templates"
    __table_args__ = (
        sa.UniqueConstraint("doctor_id", "day_of_week", name="uq_availability_doctor_day"),
        sa.Index("ix_availability_doctor_active", "doctor_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    doctor_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    slot_duration: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="30")
    buffer_time: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    # [{"start_time": "12:00", "end_time": "13:00", "reason": "Lunch"}, ...]
    break_times: Mapped[list[dict[str, Any]]] = mapped_column(sa.JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

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
