# app/services/slot_availability.py
"""
Read-only availability queries. Results are a snapshot; anything that acts
on them must go through the booking engine, which re-checks at write time.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.core.timeutils import DAY_NAMES, combine, day_of_week, format_time, parse_date, parse_time, today
from app.crud.records import get_doctor
from app.crud.time_slot import get_slot_at, list_slots
from app.db.models.time_slot import SLOT_AVAILABLE, SLOT_BLOCKED, SLOT_BOOKED, TimeSlot

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


async def get_next_available_slot(
    db: AsyncSession, doctor_id: int, from_date: Optional[date | str] = None
) -> Optional[dict[str, Any]]:
    """Earliest available slot on or after from_date (default: today in clinic time)."""
    start = parse_date(from_date) if from_date is not None else today()
    slots = await list_slots(db, doctor_id=doctor_id, start=start, slot_type=SLOT_AVAILABLE, limit=1)
    if not slots:
        return None
    slot = slots[0]
    return {
        "slot": slot,
        "doctor": await get_doctor(db, doctor_id),
        "date_time": combine(slot.date, slot.time),
    }


def _day_stats(slots: Sequence[TimeSlot]) -> dict[str, Any]:
    total = len(slots)
    booked = sum(1 for s in slots if s.slot_type == SLOT_BOOKED)
    return {
        "total": total,
        "available": sum(1 for s in slots if s.slot_type == SLOT_AVAILABLE),
        "booked": booked,
        "blocked": sum(1 for s in slots if s.slot_type == SLOT_BLOCKED),
        "utilization_rate": round(booked / total * 100, 2) if total else 0.0,
    }


async def get_weekly_availability_summary(
    db: AsyncSession, doctor_id: int, week_start_date: date | str
) -> dict[str, Any]:
    """Seven days from week_start_date: per-day counts and the week total."""
    week_start = parse_date(week_start_date)
    week_end = week_start + timedelta(days=6)
    slots = await list_slots(db, doctor_id=doctor_id, start=week_start, end=week_end)

    by_date: dict[date, list[TimeSlot]] = defaultdict(list)
    for slot in slots:
        by_date[slot.date].append(slot)

    daily = []
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        daily.append({"date": day, "day_name": DAY_NAMES[day_of_week(day)], **_day_stats(by_date[day])})

    return {
        "week_start_date": week_start,
        "week_end_date": week_end,
        "daily_stats": daily,
        "week_total": _day_stats(slots),
    }


def score_alternative(slot: TimeSlot, preferred: datetime) -> tuple[float, float]:
    """(score, days_difference); 100 at the preferred moment, minus 10 per day, floored at 0."""
    delta = abs((combine(slot.date, slot.time) - preferred).total_seconds())
    days = delta / SECONDS_PER_DAY
    return max(0.0, 100.0 - days * 10.0), days


async def find_alternative_slots(
    db: AsyncSession,
    doctor_id: int,
    preferred_date: date | str,
    preferred_time: time | str,
    search_radius: Optional[int] = None,
    max_results: Optional[int] = None,
) -> dict[str, Any]:
    radius = search_radius if search_radius is not None else settings.ALTERNATIVE_SEARCH_RADIUS_DAYS
    limit = max_results if max_results is not None else settings.ALTERNATIVE_MAX_RESULTS
    day = parse_date(preferred_date)
    at = parse_time(preferred_time)
    preferred = combine(day, at)

    candidates = await list_slots(
        db,
        doctor_id=doctor_id,
        start=day - timedelta(days=radius),
        end=day + timedelta(days=radius),
        slot_type=SLOT_AVAILABLE,
    )

    scored = []
    for slot in candidates:
        score, days = score_alternative(slot, preferred)
        scored.append({
            "slot": slot,
            "score": round(score, 2),
            "days_difference": round(days, 4),
            "is_preferred_date": slot.date == day,
            "is_preferred_time": slot.time == at,
        })
    # ties keep chronological order
    scored.sort(key=lambda s: (-s["score"], s["slot"].date, s["slot"].time))

    return {
        "preferred_date_time": preferred,
        "alternative_slots": scored[:limit],
        "search_radius": radius,
        "total_found": len(candidates),
    }


async def check_slot_availability(
    db: AsyncSession, doctor_id: int, on: date | str, at: time | str
) -> dict[str, Any]:
    slot = await get_slot_at(db, doctor_id, parse_date(on), parse_time(at))
    if slot is None:
        return {"is_available": False, "reason": "No slot exists for this time", "slot": None}
    is_available = slot.slot_type == SLOT_AVAILABLE
    return {
        "is_available": is_available,
        "reason": None if is_available else f"Slot is {slot.slot_type}",
        "slot": slot,
    }


async def bulk_check_availability(db: AsyncSession, checks: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """One row per input, in input order. A missing slot reports slot_type 'not_found'."""
    results = []
    for check in checks:
        slot = await get_slot_at(db, check["doctor_id"], parse_date(check["date"]), parse_time(check["time"]))
        results.append({
            "doctor_id": check["doctor_id"],
            "date": parse_date(check["date"]),
            "time": parse_time(check["time"]),
            "is_available": slot is not None and slot.slot_type == SLOT_AVAILABLE,
            "slot_type": slot.slot_type if slot is not None else "not_found",
            "slot_id": slot.id if slot is not None else None,
        })
    return results


async def get_multi_doctor_availability(
    db: AsyncSession, doctor_ids: Sequence[int], start_date: date | str, end_date: date | str
) -> list[dict[str, Any]]:
    start, end = parse_date(start_date), parse_date(end_date)
    out = []
    for doctor_id in doctor_ids:
        slots = await list_slots(db, doctor_id=doctor_id, start=start, end=end, slot_type=SLOT_AVAILABLE)
        by_date: dict[date, list[TimeSlot]] = defaultdict(list)
        for slot in slots:
            by_date[slot.date].append(slot)
        out.append({
            "doctor_id": doctor_id,
            "doctor": await get_doctor(db, doctor_id),
            "total_slots": len(slots),
            "slots_by_date": dict(by_date),
        })
    return out


async def get_peak_availability_times(
    db: AsyncSession, doctor_id: int, start_date: date | str, end_date: date | str, top: int = 5
) -> dict[str, Any]:
    """Clock times with the most open slots across the range."""
    start, end = parse_date(start_date), parse_date(end_date)
    slots = await list_slots(db, doctor_id=doctor_id, start=start, end=end, slot_type=SLOT_AVAILABLE)

    by_time: dict[time, list[date]] = defaultdict(list)
    for slot in slots:
        by_time[slot.time].append(slot.date)

    ranked = sorted(by_time.items(), key=lambda kv: (-len(kv[1]), kv[0]))
    return {
        "peak_times": [
            {"time": format_time(t), "count": len(dates), "dates": dates}
            for t, dates in ranked[:top]
        ],
        "total_slots": len(slots),
        "start_date": start,
        "end_date": end,
    }
