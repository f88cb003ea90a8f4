# app/crud/time_slot.py
"""
Slot store primitives. Nothing here commits; the calling service owns the
transaction. Every state transition is a single conditional UPDATE so the
database decides who wins a race.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Iterable, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.time_slot import (
    SLOT_AVAILABLE,
    SLOT_BLOCKED,
    SLOT_BOOKED,
    TimeSlot,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_slot(db: AsyncSession, slot_id: int, *, fresh: bool = False) -> Optional[TimeSlot]:
    return await db.get(TimeSlot, slot_id, populate_existing=fresh)


async def get_slot_at(db: AsyncSession, doctor_id: int, on: date, at: time) -> Optional[TimeSlot]:
    res = await db.execute(
        sa.select(TimeSlot).where(
            TimeSlot.doctor_id == doctor_id,
            TimeSlot.date == on,
            TimeSlot.time == at,
        )
    )
    return res.scalars().first()


async def has_slots_on(db: AsyncSession, doctor_id: int, on: date) -> bool:
    res = await db.execute(
        sa.select(TimeSlot.id).where(TimeSlot.doctor_id == doctor_id, TimeSlot.date == on).limit(1)
    )
    return res.first() is not None


async def list_slots(
    db: AsyncSession,
    *,
    doctor_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    slot_type: Optional[str] = None,
    limit: Optional[int] = None,
) -> Sequence[TimeSlot]:
    """Slots ordered by (date, time). Date bounds are inclusive."""
    q = sa.select(TimeSlot)
    if doctor_id is not None:
        q = q.where(TimeSlot.doctor_id == doctor_id)
    if start is not None:
        q = q.where(TimeSlot.date >= start)
    if end is not None:
        q = q.where(TimeSlot.date <= end)
    if slot_type is not None:
        q = q.where(TimeSlot.slot_type == slot_type)
    q = q.order_by(TimeSlot.date.asc(), TimeSlot.time.asc(), TimeSlot.id.asc())
    if limit is not None:
        q = q.limit(limit)
    res = await db.execute(q)
    return res.scalars().all()


async def list_slots_in_window(
    db: AsyncSession,
    doctor_id: int,
    on: date,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
) -> Sequence[TimeSlot]:
    """Slots on one day, narrowed to those overlapping [start_time, end_time) when given."""
    q = sa.select(TimeSlot).where(TimeSlot.doctor_id == doctor_id, TimeSlot.date == on)
    if start_time is not None and end_time is not None:
        q = q.where(TimeSlot.time < end_time, TimeSlot.end_time > start_time)
    q = q.order_by(TimeSlot.time.asc())
    res = await db.execute(q)
    return res.scalars().all()


async def slots_for_appointment(db: AsyncSession, appointment_id: int) -> Sequence[TimeSlot]:
    res = await db.execute(sa.select(TimeSlot).where(TimeSlot.appointment_id == appointment_id))
    return res.scalars().all()


async def insert_slots(db: AsyncSession, slots: Iterable[TimeSlot]) -> list[int]:
    slots = list(slots)
    db.add_all(slots)
    await db.flush()
    return [s.id for s in slots]


async def mark_booked_if_available(db: AsyncSession, slot_id: int, appointment_id: int) -> bool:
    """Compare-and-set available -> booked. False when someone else got there first."""
    res = await db.execute(
        sa.update(TimeSlot)
        .where(TimeSlot.id == slot_id, TimeSlot.slot_type == SLOT_AVAILABLE)
        .values(slot_type=SLOT_BOOKED, appointment_id=appointment_id, updated_at=_now())
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount == 1


async def mark_available(db: AsyncSession, slot_ids: Sequence[int]) -> int:
    """Unconditional release: available, binding cleared."""
    if not slot_ids:
        return 0
    res = await db.execute(
        sa.update(TimeSlot)
        .where(TimeSlot.id.in_(slot_ids))
        .values(slot_type=SLOT_AVAILABLE, appointment_id=None, updated_at=_now())
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount


async def mark_blocked(db: AsyncSession, slot_ids: Sequence[int]) -> int:
    """Block the given slots. Appointment bindings are left as they are."""
    if not slot_ids:
        return 0
    res = await db.execute(
        sa.update(TimeSlot)
        .where(TimeSlot.id.in_(slot_ids))
        .values(slot_type=SLOT_BLOCKED, updated_at=_now())
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount


async def restore_blocked(db: AsyncSession, slot_ids: Sequence[int]) -> int:
    """blocked -> available, only for slots still blocked and not bound to an appointment."""
    if not slot_ids:
        return 0
    res = await db.execute(
        sa.update(TimeSlot)
        .where(
            TimeSlot.id.in_(slot_ids),
            TimeSlot.slot_type == SLOT_BLOCKED,
            TimeSlot.appointment_id.is_(None),
        )
        .values(slot_type=SLOT_AVAILABLE, updated_at=_now())
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount


async def rebook_blocked(db: AsyncSession, slot_ids: Sequence[int], appointment_ids: Sequence[int]) -> int:
    """blocked -> booked for slots still blocked and bound to one of the given live appointments."""
    if not slot_ids or not appointment_ids:
        return 0
    res = await db.execute(
        sa.update(TimeSlot)
        .where(
            TimeSlot.id.in_(slot_ids),
            TimeSlot.slot_type == SLOT_BLOCKED,
            TimeSlot.appointment_id.in_(appointment_ids),
        )
        .values(slot_type=SLOT_BOOKED, updated_at=_now())
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount


async def delete_unbound_slots_before(db: AsyncSession, cutoff: date) -> int:
    res = await db.execute(
        sa.delete(TimeSlot)
        .where(TimeSlot.date < cutoff, TimeSlot.appointment_id.is_(None))
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount
