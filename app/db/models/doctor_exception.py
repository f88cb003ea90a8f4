# app/db/models/doctor_exception.py

from __future__ import annotations
import datetime as dt
from datetime import datetime, timezone
from typing import Any
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, BigIntPK

EXCEPTION_TYPES = ("vacation", "sick", "conference", "emergency", "personal", "training")
RECURRENCE_FREQUENCIES = ("weekly", "monthly")


class DoctorException(Base):
    """
    A declared unavailability. Keeps the ids of the slots it blocked so that
    deleting it restores exactly those slots.
    """
    __tablename__ = "doctor_exceptions"
    __table_args__ = (
        sa.Index("ix_doctor_exceptions_doctor_date", "doctor_id", "date"),
        sa.Index("ix_doctor_exceptions_doctor_type", "doctor_id", "exception_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    doctor_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    exception_type: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    # both null = full day
    start_time: Mapped[dt.time | None] = mapped_column(sa.Time)
    end_time: Mapped[dt.time | None] = mapped_column(sa.Time)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="")
    affected_slots: Mapped[list[int]] = mapped_column(sa.JSON, nullable=False, default=list)
    is_recurring: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    # {"frequency": "weekly"|"monthly", "interval": 1, "end_date": "2025-12-31"|None}
    recurring_pattern: Mapped[dict[str, Any] | None] = mapped_column(sa.JSON)

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
    created_by: Mapped[int | None] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="SET NULL"))

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None or self.end_time is None
