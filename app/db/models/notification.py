# app/db/models/notification.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, BigIntPK


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_recipient_id", "recipient_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    recipient_type: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    category: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="administrative")
    type: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    priority: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="medium")
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(sa.String(500))
    related_records: Mapped[dict[str, Any] | None] = mapped_column(sa.JSON)
    channels: Mapped[list[str]] = mapped_column(sa.JSON, nullable=False, default=lambda: ["in_app", "email"])
    is_read: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
