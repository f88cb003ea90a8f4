# app/services/slot_generator.py
"""
Expands a doctor's weekly templates into concrete time slots.

Generation is idempotent per day: a date that already has any slot for the
doctor is left untouched, even if it is only partly filled.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConfigurationError, ConflictError, ValidationError
from app.core.logging import get_logger
from app.core.timeutils import date_range, day_of_week, minutes_to_time, parse_date, time_to_minutes
from app.crud.time_slot import has_slots_on, insert_slots
from app.db.models.time_slot import SLOT_AVAILABLE, TimeSlot
from app.services.availability_templates import get_doctor_availability

logger = get_logger(__name__)


@dataclass
class SlotWindow:
    start: time
    end: time


@dataclass
class GenerationResult:
    generated_count: int
    start_date: date
    end_date: date
    slot_ids: list[int] = field(default_factory=list)


def _break_windows(break_times: Any) -> list[tuple[int, int]]:
    return sorted(
        (time_to_minutes(b["start_time"]), time_to_minutes(b["end_time"]))
        for b in break_times or []
    )


def generate_day_slots(template: Any) -> list[SlotWindow]:
    """
    Walk the working window in steps of slot_duration + buffer_time.

    A candidate that overlaps a break jumps to exactly the break end (no
    buffer after a break). A slot is only emitted when it ends within the
    working window.
    """
    start = time_to_minutes(template.start_time)
    end = time_to_minutes(template.end_time)
    duration = template.slot_duration
    step = duration + template.buffer_time
    breaks = _break_windows(template.break_times)

    slots: list[SlotWindow] = []
    current = start
    while current + duration <= end:
        conflict = next(
            (b for b in breaks if current < b[1] and current + duration > b[0]),
            None,
        )
        if conflict:
            current = conflict[1]
            continue

        slots.append(SlotWindow(minutes_to_time(current), minutes_to_time(current + duration)))
        current += step

    return slots


async def generate_time_slots(
    db: AsyncSession,
    doctor_id: int,
    start_date: date | str,
    end_date: date | str,
    *,
    templates: Optional[Mapping[int, Any]] = None,
) -> GenerationResult:
    """Materialise available slots for every configured weekday in [start_date, end_date]."""
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start > end:
        raise ValidationError("start_date must not be after end_date",
                              start_date=start.isoformat(), end_date=end.isoformat())

    if templates is None:
        active = await get_doctor_availability(db, doctor_id, active_only=True)
        templates = {t.day_of_week: t for t in active}
    if not templates:
        raise ConfigurationError("No availability templates found for doctor", doctor_id=doctor_id)

    now = datetime.now(timezone.utc)
    new_slots: list[TimeSlot] = []
    for day in date_range(start, end):
        template = templates.get(day_of_week(day))
        if template is None:
            continue
        if await has_slots_on(db, doctor_id, day):
            continue

        for window in generate_day_slots(template):
            new_slots.append(TimeSlot(
                doctor_id=doctor_id,
                date=day,
                time=window.start,
                end_time=window.end,
                slot_type=SLOT_AVAILABLE,
                is_recurring=True,
                generated_from="template",
                created_at=now,
            ))

    try:
        slot_ids = await insert_slots(db, new_slots)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # another generation run for the same days committed first
        raise ConflictError("Slots for this date range are being generated concurrently; retry",
                            doctor_id=doctor_id)

    logger.info("slots_generated", doctor_id=doctor_id, start_date=start.isoformat(),
                end_date=end.isoformat(), count=len(slot_ids))
    return GenerationResult(
        generated_count=len(slot_ids),
        start_date=start,
        end_date=end,
        slot_ids=slot_ids,
    )
