# app/services/doctor_exceptions.py
"""
Doctor exceptions: declared unavailability that blocks already generated
slots. The exception row remembers which slots it blocked so that deleting
it gives back exactly those slots and nothing that was rebooked since.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Sequence

import sqlalchemy as sa
from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import BlockPolicy, settings
from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.timeutils import format_date, parse_date, time_to_minutes, today
from app.crud.records import require_doctor
from app.crud.time_slot import (
    list_slots_in_window,
    mark_blocked,
    rebook_blocked,
    restore_blocked,
)
from app.db.models.appointment import Appointment, CLOSED_STATUSES
from app.db.models.doctor_exception import (
    DoctorException,
    EXCEPTION_TYPES,
    RECURRENCE_FREQUENCIES,
)
from app.db.models.time_slot import TimeSlot
from app.services.booking import partition_bound, window_args

logger = get_logger(__name__)


def _check_pattern(is_recurring: bool, pattern: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if not is_recurring:
        return None
    if not pattern:
        raise ValidationError("Recurring exceptions need a recurring_pattern")
    frequency = pattern.get("frequency")
    if frequency not in RECURRENCE_FREQUENCIES:
        raise ValidationError(f"Unknown recurrence frequency: {frequency!r}")
    interval = int(pattern.get("interval") or 0)
    if interval < 1:
        raise ValidationError("Recurrence interval must be at least 1")
    end_date = pattern.get("end_date")
    if end_date:
        try:
            end_date = format_date(parse_date(end_date))
        except ValueError as e:
            raise ValidationError(str(e))
    return {"frequency": frequency, "interval": interval, "end_date": end_date or None}


async def _get_exception(db: AsyncSession, exception_id: int) -> DoctorException:
    exception = await db.get(DoctorException, exception_id)
    if exception is None:
        raise NotFoundError("Exception not found", exception_id=exception_id)
    return exception


async def create_doctor_exception(
    db: AsyncSession,
    *,
    doctor_id: int,
    date: date | str,
    exception_type: str,
    reason: str = "",
    start_time: Optional[time | str] = None,
    end_time: Optional[time | str] = None,
    is_recurring: bool = False,
    recurring_pattern: Optional[dict[str, Any]] = None,
    created_by: Optional[int] = None,
    policy: Optional[BlockPolicy] = None,
) -> dict[str, Any]:
    """
    Block the doctor's slots on one date (optionally a time window) and record
    the exception. Appointments sitting in those slots are returned, not
    cancelled; following up with the patients is up to the caller.
    """
    if exception_type not in EXCEPTION_TYPES:
        raise ValidationError(f"Unknown exception type: {exception_type!r}")
    policy = BlockPolicy(policy or settings.EXCEPTION_BLOCK_POLICY)
    try:
        day = parse_date(date)
    except ValueError as e:
        raise ValidationError(str(e))
    start, end = window_args(start_time, end_time)
    pattern = _check_pattern(is_recurring, recurring_pattern)

    await require_doctor(db, doctor_id)
    try:
        matched = list(await list_slots_in_window(db, doctor_id, day, start, end))
        to_block, bound = partition_bound(matched, policy)
        await mark_blocked(db, [s.id for s in to_block])

        exception = DoctorException(
            doctor_id=doctor_id,
            date=day,
            exception_type=exception_type,
            start_time=start,
            end_time=end,
            reason=reason,
            affected_slots=[s.id for s in to_block],
            is_recurring=is_recurring,
            recurring_pattern=pattern,
            created_by=created_by,
        )
        db.add(exception)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    affected_appointments = sorted({s.appointment_id for s in bound})
    logger.info("doctor_exception_created", exception_id=exception.id, doctor_id=doctor_id,
                date=day.isoformat(), blocked=len(to_block), affected_appointments=len(affected_appointments))
    return {
        "exception_id": exception.id,
        "affected_slots_count": len(to_block),
        "affected_appointments": affected_appointments,
    }


async def _covered_by_others(db: AsyncSession, exception: DoctorException) -> set[int]:
    """Slot ids that another exception on the same day keeps blocked."""
    res = await db.execute(
        sa.select(DoctorException).where(
            DoctorException.doctor_id == exception.doctor_id,
            DoctorException.date == exception.date,
            DoctorException.id != exception.id,
        )
    )
    covered: set[int] = set()
    for other in res.scalars().all():
        slots = await list_slots_in_window(db, exception.doctor_id, exception.date,
                                           other.start_time, other.end_time)
        covered.update(s.id for s in slots)
    return covered


async def delete_doctor_exception(db: AsyncSession, exception_id: int) -> dict[str, Any]:
    try:
        exception = await _get_exception(db, exception_id)
        covered = await _covered_by_others(db, exception)
        exception_slots = list(exception.affected_slots or [])
        slot_ids = [i for i in exception_slots if i not in covered]

        restored = await restore_blocked(db, slot_ids)

        # blocked slots still bound to a live appointment go back to booked
        rebooked = 0
        if slot_ids:
            live = await db.execute(
                sa.select(TimeSlot.appointment_id)
                .join(Appointment, Appointment.id == TimeSlot.appointment_id)
                .where(TimeSlot.id.in_(slot_ids), Appointment.status.not_in(CLOSED_STATUSES))
            )
            rebooked = await rebook_blocked(db, slot_ids, sorted({row[0] for row in live}))

        await db.delete(exception)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("doctor_exception_deleted", exception_id=exception_id,
                restored=restored, rebooked=rebooked, still_blocked=len(exception_slots) - len(slot_ids))
    return {
        "deleted_exception_id": exception_id,
        "restored_slots_count": restored,
        "rebooked_slots_count": rebooked,
    }


async def update_doctor_exception(db: AsyncSession, exception_id: int, *, reason: str) -> DoctorException:
    """Only the reason is editable; the blocked window is fixed once slots were touched."""
    exception = await _get_exception(db, exception_id)
    exception.reason = reason
    exception.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return exception


def _date_bounds(q, start_date, end_date):
    if start_date is not None:
        q = q.where(DoctorException.date >= parse_date(start_date))
    if end_date is not None:
        q = q.where(DoctorException.date <= parse_date(end_date))
    return q


async def get_doctor_exceptions(
    db: AsyncSession,
    doctor_id: int,
    start_date: Optional[date | str] = None,
    end_date: Optional[date | str] = None,
) -> Sequence[DoctorException]:
    q = sa.select(DoctorException).where(DoctorException.doctor_id == doctor_id)
    q = _date_bounds(q, start_date, end_date)
    res = await db.execute(q.order_by(DoctorException.date.asc(), DoctorException.id.asc()))
    return res.scalars().all()


async def get_exceptions_by_type(
    db: AsyncSession,
    doctor_id: int,
    exception_type: str,
    start_date: Optional[date | str] = None,
    end_date: Optional[date | str] = None,
) -> Sequence[DoctorException]:
    q = sa.select(DoctorException).where(
        DoctorException.doctor_id == doctor_id,
        DoctorException.exception_type == exception_type,
    )
    q = _date_bounds(q, start_date, end_date)
    res = await db.execute(q.order_by(DoctorException.date.asc()))
    return res.scalars().all()


async def get_doctor_exception_stats(
    db: AsyncSession, doctor_id: int, start_date: date | str, end_date: date | str
) -> dict[str, int]:
    exceptions = await get_doctor_exceptions(db, doctor_id, start_date, end_date)
    stats = {"total": len(exceptions)}
    for kind in EXCEPTION_TYPES:
        stats[kind] = sum(1 for e in exceptions if e.exception_type == kind)
    stats["recurring"] = sum(1 for e in exceptions if e.is_recurring)
    return stats


def exception_covers(exception: DoctorException, at: time | str) -> bool:
    """Full-day exceptions cover every time; partial ones cover [start, end)."""
    if exception.is_full_day:
        return True
    minutes = time_to_minutes(at)
    return time_to_minutes(exception.start_time) <= minutes < time_to_minutes(exception.end_time)


async def check_doctor_availability_on_date(
    db: AsyncSession, doctor_id: int, on: date | str, at: Optional[time | str] = None
) -> dict[str, Any]:
    day = parse_date(on)
    exceptions = list(await get_doctor_exceptions(db, doctor_id, day, day))
    if not exceptions:
        return {"is_available": True, "exceptions": []}

    if at is not None:
        conflicting = [e for e in exceptions if exception_covers(e, at)]
        return {"is_available": not conflicting, "exceptions": conflicting}

    return {"is_available": False, "exceptions": exceptions}


def project_recurring_instances(exception: DoctorException, horizon: date) -> list[dict[str, Any]]:
    """
    Virtual future occurrences of a recurring exception, up to and including
    horizon or the pattern's end_date, whichever comes first. The anchor
    itself is not repeated. Nothing returned here is stored or blocks slots.
    """
    pattern = exception.recurring_pattern or {}
    if not exception.is_recurring or not pattern:
        return []

    frequency = pattern.get("frequency")
    interval = int(pattern.get("interval") or 1)
    if pattern.get("end_date"):
        horizon = min(horizon, parse_date(pattern["end_date"]))

    instances = []
    k = 1
    while True:
        if frequency == "weekly":
            occurrence = exception.date + timedelta(days=7 * interval * k)
        elif frequency == "monthly":
            occurrence = exception.date + relativedelta(months=interval * k)
        else:
            break
        if occurrence > horizon:
            break
        instances.append({
            "original_exception_id": exception.id,
            "doctor_id": exception.doctor_id,
            "date": occurrence,
            "exception_type": exception.exception_type,
            "start_time": exception.start_time,
            "end_time": exception.end_time,
            "reason": exception.reason,
            "is_generated_instance": True,
        })
        k += 1
    return instances


async def get_recurring_exceptions(
    db: AsyncSession,
    doctor_id: int,
    look_ahead_days: Optional[int] = None,
    *,
    today_: Optional[date] = None,
) -> dict[str, Any]:
    days = look_ahead_days if look_ahead_days is not None else settings.RECURRING_EXCEPTION_LOOKAHEAD_DAYS
    horizon = (today_ or today()) + timedelta(days=days)

    res = await db.execute(
        sa.select(DoctorException)
        .where(DoctorException.doctor_id == doctor_id, DoctorException.is_recurring.is_(True))
        .order_by(DoctorException.date.asc())
    )
    recurring = res.scalars().all()

    instances = []
    for exception in recurring:
        instances.extend(project_recurring_instances(exception, horizon))
    instances.sort(key=lambda i: (i["date"], i["original_exception_id"]))

    return {"recurring_exceptions": list(recurring), "future_instances": instances}
