# app/services/slot_maintenance.py
"""
Housekeeping jobs for the slot table: rolling generation, gap filling,
pruning of past slots and a few health numbers. Meant to be run from cron
or the /maintenance routes, never from inside a booking request.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConfigurationError, SchedulingError, ErrorSeverity, log_error
from app.core.logging import get_logger
from app.core.timeutils import date_range, day_of_week, parse_date, today
from app.crud.records import list_active_doctors
from app.crud.time_slot import delete_unbound_slots_before, has_slots_on, list_slots
from app.db.models.appointment import Appointment
from app.db.models.time_slot import SLOT_AVAILABLE, SLOT_BLOCKED, SLOT_BOOKED, SLOT_BREAK
from app.services.availability_templates import get_doctor_availability
from app.services.slot_generator import generate_time_slots

logger = get_logger(__name__)


async def generate_slots_for_all_doctors(
    db: AsyncSession, days_ahead: Optional[int] = None, *, today_: Optional[date] = None
) -> dict[str, Any]:
    """Run generation for every active, verified doctor. One doctor failing does not stop the rest."""
    days = days_ahead if days_ahead is not None else settings.SLOT_GENERATION_DAYS_AHEAD
    start = today_ or today()
    end = start + timedelta(days=days)

    doctors = await list_active_doctors(db)
    results = []
    for doctor in doctors:
        entry: dict[str, Any] = {"doctor_id": doctor.id, "doctor_name": f"{doctor.first_name} {doctor.last_name}"}
        try:
            result = await generate_time_slots(db, doctor.id, start, end)
            entry["generated_count"] = result.generated_count
        except SchedulingError as e:
            log_error(e, {"operation": "generate_slots_for_all_doctors", "doctor_id": doctor.id},
                      ErrorSeverity.LOW)
            entry["error"] = e.message
        results.append(entry)

    logger.info("bulk_slot_generation_finished", doctors=len(doctors),
                generated=sum(r.get("generated_count", 0) for r in results),
                failed=sum(1 for r in results if "error" in r))
    return {"total_doctors": len(doctors), "results": results, "start_date": start, "end_date": end}


async def generate_missing_slots(
    db: AsyncSession, doctor_id: int, start_date: date | str, end_date: date | str
) -> dict[str, Any]:
    """Generate only for scheduled weekdays that have no slots at all yet."""
    start, end = parse_date(start_date), parse_date(end_date)
    templates = {t.day_of_week: t for t in await get_doctor_availability(db, doctor_id, active_only=True)}
    if not templates:
        raise ConfigurationError("No availability templates found for doctor", doctor_id=doctor_id)

    missing = [
        day for day in date_range(start, end)
        if day_of_week(day) in templates and not await has_slots_on(db, doctor_id, day)
    ]

    total = 0
    for day in missing:
        result = await generate_time_slots(db, doctor_id, day, day, templates=templates)
        total += result.generated_count

    return {"missing_dates": missing, "total_generated": total, "start_date": start, "end_date": end}


async def cleanup_old_slots(
    db: AsyncSession, older_than_days: Optional[int] = None, *, today_: Optional[date] = None
) -> dict[str, Any]:
    """Delete past slots. Slots still bound to an appointment are kept as history."""
    days = older_than_days if older_than_days is not None else settings.SLOT_CLEANUP_OLDER_THAN_DAYS
    cutoff = (today_ or today()) - timedelta(days=days)
    try:
        deleted = await delete_unbound_slots_before(db, cutoff)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("old_slots_cleaned", cutoff=cutoff.isoformat(), deleted=deleted)
    return {"deleted_count": deleted, "cutoff_date": cutoff}


async def optimize_doctor_slots(db: AsyncSession, doctor_id: int, on: date | str) -> dict[str, Any]:
    """Suggestions only: open gaps between bookings and isolated single open slots."""
    day = parse_date(on)
    slots = list(await list_slots(db, doctor_id=doctor_id, start=day, end=day))
    if not slots:
        return {"date": day, "total_slots": 0, "optimizations": []}

    optimizations = []
    booked = [s for s in slots if s.slot_type == SLOT_BOOKED]
    for left, right in zip(booked, booked[1:]):
        gap = [s for s in slots
               if s.slot_type == SLOT_AVAILABLE and left.end_time <= s.time and s.time < right.time]
        if gap:
            optimizations.append({
                "type": "gap_optimization",
                "between": [left.id, right.id],
                "available_slots": [s.id for s in gap],
                "suggestion": "Consider consolidating appointments to reduce gaps",
            })

    isolated = [
        s.id for i, s in enumerate(slots)
        if s.slot_type == SLOT_AVAILABLE
        and (i == 0 or slots[i - 1].slot_type != SLOT_AVAILABLE)
        and (i == len(slots) - 1 or slots[i + 1].slot_type != SLOT_AVAILABLE)
    ]
    if isolated:
        optimizations.append({
            "type": "isolated_slots",
            "slots": isolated,
            "suggestion": "Consider blocking isolated slots to create larger available blocks",
        })

    return {
        "date": day,
        "total_slots": len(slots),
        "optimizations": optimizations,
        "stats": {
            "available": sum(1 for s in slots if s.slot_type == SLOT_AVAILABLE),
            "booked": len(booked),
            "blocked": sum(1 for s in slots if s.slot_type == SLOT_BLOCKED),
        },
    }


async def get_maintenance_stats(
    db: AsyncSession, days_back: int = 30, *, today_: Optional[date] = None
) -> dict[str, Any]:
    end = today_ or today()
    start = end - timedelta(days=days_back)

    slots = await list_slots(db, start=start)
    slot_stats = {
        "total_slots": len(slots),
        "available": sum(1 for s in slots if s.slot_type == SLOT_AVAILABLE),
        "booked": sum(1 for s in slots if s.slot_type == SLOT_BOOKED),
        "blocked": sum(1 for s in slots if s.slot_type == SLOT_BLOCKED),
        "break": sum(1 for s in slots if s.slot_type == SLOT_BREAK),
    }
    slot_stats["utilization_rate"] = (
        round(slot_stats["booked"] / slot_stats["total_slots"] * 100, 2) if slot_stats["total_slots"] else 0.0
    )

    doctors = await list_active_doctors(db)

    res = await db.execute(
        sa.select(Appointment.status, sa.func.count())
        .where(Appointment.appointment_date_time >= datetime.combine(start, time.min))
        .group_by(Appointment.status)
    )
    by_status = {status: count for status, count in res.all()}

    return {
        "start_date": start,
        "end_date": end,
        "slot_stats": slot_stats,
        "doctor_stats": {
            "total_active_doctors": len(doctors),
            "average_slots_per_doctor": round(len(slots) / len(doctors), 2) if doctors else 0.0,
        },
        "appointment_stats": {
            "total_appointments": sum(by_status.values()),
            "scheduled": by_status.get("scheduled", 0),
            "completed": by_status.get("completed", 0),
            "cancelled": by_status.get("cancelled", 0),
        },
    }
