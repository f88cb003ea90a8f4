# app/services/availability_templates.py
"""
Doctor availability templates: the recurring weekly pattern slots are
generated from. One template per (doctor, weekday).
"""
from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Any, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.core.timeutils import DAY_NAMES, format_time, parse_time, time_to_minutes
from app.crud.records import require_doctor
from app.db.models.availability import AvailabilityTemplate

logger = get_logger(__name__)


def normalize_break_times(break_times: Optional[Sequence[Any]]) -> list[dict[str, str]]:
    """Accepts dicts or pydantic models; stores zero padded HH:MM strings."""
    out = []
    for b in break_times or []:
        data = b if isinstance(b, dict) else b.model_dump()
        out.append({
            "start_time": format_time(parse_time(data["start_time"])),
            "end_time": format_time(parse_time(data["end_time"])),
            "reason": data.get("reason") or "",
        })
    return sorted(out, key=lambda b: b["start_time"])


def validate_availability_times(
    start_time: time | str,
    end_time: time | str,
    break_times: Optional[Sequence[Any]] = None,
) -> list[str]:
    """Return human readable problems with a working window and its breaks; empty when valid."""
    errors: list[str] = []
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)

    if start >= end:
        errors.append("Start time must be before end time")

    breaks = normalize_break_times(break_times)
    for b in breaks:
        b_start = time_to_minutes(b["start_time"])
        b_end = time_to_minutes(b["end_time"])
        label = b["reason"] or f'{b["start_time"]}-{b["end_time"]}'
        if b_start >= b_end:
            errors.append(f'Break "{label}": start time must be before end time')
        if b_start < start or b_end > end:
            errors.append(f'Break "{label}": must be within working hours')

    for i in range(len(breaks)):
        for j in range(i + 1, len(breaks)):
            a, b = breaks[i], breaks[j]
            if (time_to_minutes(a["start_time"]) < time_to_minutes(b["end_time"])
                    and time_to_minutes(b["start_time"]) < time_to_minutes(a["end_time"])):
                errors.append(
                    f'Breaks "{a["reason"] or a["start_time"]}" and "{b["reason"] or b["start_time"]}" overlap'
                )

    return errors


def _check_template_args(day_of_week: int, slot_duration: int, buffer_time: int,
                         start_time, end_time, break_times) -> None:
    errors = []
    if not 0 <= day_of_week <= 6:
        errors.append("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if slot_duration <= 0:
        errors.append("slot_duration must be a positive number of minutes")
    if buffer_time < 0:
        errors.append("buffer_time cannot be negative")
    try:
        errors.extend(validate_availability_times(start_time, end_time, break_times))
    except (KeyError, ValueError) as e:
        errors.append(f"Malformed time: {e}")
    if errors:
        raise ValidationError("Invalid availability template", errors=errors)


async def get_doctor_availability_by_day(
    db: AsyncSession, doctor_id: int, day_of_week: int
) -> Optional[AvailabilityTemplate]:
    res = await db.execute(
        sa.select(AvailabilityTemplate).where(
            AvailabilityTemplate.doctor_id == doctor_id,
            AvailabilityTemplate.day_of_week == day_of_week,
        )
    )
    return res.scalars().first()


async def get_doctor_availability(
    db: AsyncSession, doctor_id: int, *, active_only: bool = False
) -> Sequence[AvailabilityTemplate]:
    q = sa.select(AvailabilityTemplate).where(AvailabilityTemplate.doctor_id == doctor_id)
    if active_only:
        q = q.where(AvailabilityTemplate.is_active.is_(True))
    res = await db.execute(q.order_by(AvailabilityTemplate.day_of_week.asc()))
    return res.scalars().all()


async def _upsert_template(
    db: AsyncSession,
    doctor_id: int,
    *,
    day_of_week: int,
    start_time: time | str,
    end_time: time | str,
    slot_duration: int,
    buffer_time: int = 0,
    break_times: Optional[Sequence[Any]] = None,
    is_active: bool = True,
) -> AvailabilityTemplate:
    _check_template_args(day_of_week, slot_duration, buffer_time, start_time, end_time, break_times)

    values = dict(
        start_time=parse_time(start_time),
        end_time=parse_time(end_time),
        slot_duration=slot_duration,
        buffer_time=buffer_time,
        break_times=normalize_break_times(break_times),
        is_active=is_active,
    )

    template = await get_doctor_availability_by_day(db, doctor_id, day_of_week)
    if template:
        for key, value in values.items():
            setattr(template, key, value)
        template.updated_at = datetime.now(timezone.utc)
    else:
        template = AvailabilityTemplate(doctor_id=doctor_id, day_of_week=day_of_week, **values)
        db.add(template)
    await db.flush()
    return template


async def set_doctor_availability(db: AsyncSession, doctor_id: int, **fields: Any) -> AvailabilityTemplate:
    """Create or replace the template for one weekday."""
    await require_doctor(db, doctor_id)
    try:
        template = await _upsert_template(db, doctor_id, **fields)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("availability_template_saved", doctor_id=doctor_id, day_of_week=template.day_of_week)
    return template


async def set_weekly_availability(
    db: AsyncSession, doctor_id: int, weekly_schedule: Sequence[dict[str, Any]]
) -> list[int]:
    """Save every weekday in one transaction; any invalid day rejects the whole week."""
    await require_doctor(db, doctor_id)
    ids = []
    try:
        for day in weekly_schedule:
            template = await _upsert_template(db, doctor_id, **day)
            ids.append(template.id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("weekly_availability_saved", doctor_id=doctor_id, days=len(ids))
    return ids


async def delete_doctor_availability(db: AsyncSession, doctor_id: int, day_of_week: int) -> bool:
    template = await get_doctor_availability_by_day(db, doctor_id, day_of_week)
    if not template:
        return False
    await db.delete(template)
    await db.commit()
    logger.info("availability_template_deleted", doctor_id=doctor_id, day_of_week=day_of_week)
    return True


def _break_minutes(template: AvailabilityTemplate) -> int:
    return sum(
        time_to_minutes(b["end_time"]) - time_to_minutes(b["start_time"])
        for b in template.break_times or []
    )


async def get_doctor_availability_summary(db: AsyncSession, doctor_id: int) -> list[dict[str, Any]]:
    templates = await get_doctor_availability(db, doctor_id, active_only=True)
    return [
        {
            "day_of_week": t.day_of_week,
            "day_name": DAY_NAMES[t.day_of_week],
            "start_time": format_time(t.start_time),
            "end_time": format_time(t.end_time),
            "slot_duration": t.slot_duration,
            "buffer_time": t.buffer_time,
            "break_count": len(t.break_times or []),
            "total_break_time": _break_minutes(t),
        }
        for t in templates
    ]
