# app/services/notifications.py
"""
Notification side channel for the scheduling services.

Scheduling mutations commit first and notify afterwards; a failing sink is
logged and never undoes the mutation that triggered it.
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import ErrorSeverity, log_error
from app.core.logging import get_logger
from app.db.models.notification import Notification

logger = get_logger(__name__)


class NotificationSink:
    """Interface: deliver one notification to one recipient."""

    async def notify(
        self,
        *,
        recipient_id: int,
        recipient_type: str,
        category: str,
        type: str,
        priority: str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        related_records: Optional[dict[str, Any]] = None,
    ) -> None:
        raise NotImplementedError


class DatabaseNotificationSink(NotificationSink):
    """Persists in-app notifications through a session of its own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def notify(self, **payload: Any) -> None:
        async with self.session_factory() as session:
            session.add(Notification(**payload))
            await session.commit()


_default_sink: Optional[NotificationSink] = None


def get_notification_sink() -> NotificationSink:
    global _default_sink
    if _default_sink is None:
        from app.db.session import AsyncSessionLocal
        _default_sink = DatabaseNotificationSink(AsyncSessionLocal)
    return _default_sink


def set_notification_sink(sink: Optional[NotificationSink]) -> None:
    global _default_sink
    _default_sink = sink


async def send_notification(sink: Optional[NotificationSink], **payload: Any) -> bool:
    """Best effort: returns False instead of raising when delivery fails."""
    sink = sink or get_notification_sink()
    payload.setdefault("category", "administrative")
    payload.setdefault("priority", "medium")
    try:
        await sink.notify(**payload)
    except Exception as e:
        log_error(e, {"operation": "send_notification", "notification_type": payload.get("type")},
                  ErrorSeverity.MEDIUM)
        return False
    logger.info("notification_sent", recipient_id=payload.get("recipient_id"),
                notification_type=payload.get("type"))
    return True
