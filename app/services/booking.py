# app/services/booking.py
from __future__ import annotations

from collections import defaultdict
from datetime import date, time
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import BlockPolicy, settings
from app.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.core.logging import get_logger
from app.core.timeutils import combine, parse_date, parse_time, time_to_minutes
from app.crud.appointment import create_appointment, get_appointment
from app.crud.records import get_doctor_patient
from app.crud.time_slot import (
    get_slot,
    list_slots,
    list_slots_in_window,
    mark_available,
    mark_blocked,
    mark_booked_if_available,
    slots_for_appointment,
)
from app.db.models.appointment import Appointment
from app.db.models.time_slot import (
    SLOT_AVAILABLE,
    SLOT_BLOCKED,
    SLOT_BOOKED,
    SLOT_BREAK,
    TimeSlot,
)
from app.services.notifications import NotificationSink, send_notification

logger = get_logger(__name__)


# ---------- Internal helpers ----------

async def claim_slot(db: AsyncSession, slot_id: int, appointment_id: int) -> TimeSlot:
    """
    Book inside the caller's transaction. The conditional UPDATE is the only
    arbiter; a zero row count is re-read to tell "gone" from "taken".
    """
    if await mark_booked_if_available(db, slot_id, appointment_id):
        return await get_slot(db, slot_id, fresh=True)

    slot = await get_slot(db, slot_id, fresh=True)
    if slot is None:
        raise NotFoundError("Time slot not found", slot_id=slot_id)
    raise ConflictError(
        "Time slot is no longer available; please pick another slot",
        slot_id=slot_id,
        slot_type=slot.slot_type,
    )


async def require_live_appointment(db: AsyncSession, appointment_id: int) -> Appointment:
    """The appointment a slot is booked for must exist and still be open."""
    appointment = await get_appointment(db, appointment_id, fresh=True)
    if appointment is None:
        raise NotFoundError("Appointment not found", appointment_id=appointment_id)
    if appointment.is_closed:
        raise StateError(f"Appointment is already {appointment.status}",
                         appointment_id=appointment_id, status=appointment.status)
    return appointment


def window_args(start_time: Optional[time | str], end_time: Optional[time | str]) -> tuple[Optional[time], Optional[time]]:
    """A time window is either fully given or fully absent."""
    if (start_time is None) != (end_time is None):
        raise ValidationError("start_time and end_time must be given together")
    if start_time is None:
        return None, None
    try:
        start, end = parse_time(start_time), parse_time(end_time)
    except ValueError as e:
        raise ValidationError(str(e))
    if time_to_minutes(start) >= time_to_minutes(end):
        raise ValidationError("start_time must be before end_time")
    return start, end


def partition_bound(slots: list[TimeSlot], policy: BlockPolicy) -> tuple[list[TimeSlot], list[TimeSlot]]:
    """Split matched slots into (to_block, bound) according to the booked-slot policy."""
    bound = [s for s in slots if s.appointment_id is not None]
    if bound and policy == BlockPolicy.REFUSE:
        raise ConflictError(
            "Some slots in this window are booked; cancel or reschedule them first",
            appointment_ids=sorted({s.appointment_id for s in bound}),
            slot_ids=[s.id for s in bound],
        )
    if policy == BlockPolicy.SKIP:
        return [s for s in slots if s.appointment_id is None], bound
    return list(slots), bound


# ---------- Slot transitions ----------

async def book_time_slot(db: AsyncSession, slot_id: int, appointment_id: int) -> TimeSlot:
    """available -> booked, atomically. ConflictError when the slot was taken."""
    try:
        await require_live_appointment(db, appointment_id)
        slot = await claim_slot(db, slot_id, appointment_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("slot_booked", slot_id=slot_id, appointment_id=appointment_id)
    return slot


async def release_time_slot(db: AsyncSession, slot_id: int) -> TimeSlot:
    """Back to available with the binding cleared. Releasing twice is harmless."""
    try:
        if not await mark_available(db, [slot_id]):
            raise NotFoundError("Time slot not found", slot_id=slot_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("slot_released", slot_id=slot_id)
    return await get_slot(db, slot_id, fresh=True)


async def block_time_slots(
    db: AsyncSession,
    doctor_id: int,
    on: date | str,
    start_time: Optional[time | str] = None,
    end_time: Optional[time | str] = None,
    reason: str = "",
    *,
    policy: Optional[BlockPolicy] = None,
) -> dict[str, Any]:
    policy = BlockPolicy(policy or settings.SLOT_BLOCK_POLICY)
    day = parse_date(on)
    start, end = window_args(start_time, end_time)

    try:
        matched = list(await list_slots_in_window(db, doctor_id, day, start, end))
        to_block, bound = partition_bound(matched, policy)
        await mark_blocked(db, [s.id for s in to_block])
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("slots_blocked", doctor_id=doctor_id, date=day.isoformat(), count=len(to_block),
                policy=policy.value, reason=reason)
    return {
        "blocked_count": len(to_block),
        "blocked_slots": [s.id for s in to_block],
        "skipped_booked_slots": [s.id for s in bound] if policy == BlockPolicy.SKIP else [],
    }


# ---------- Appointment + slot ----------

async def book_appointment(
    db: AsyncSession,
    *,
    slot_id: int,
    doctor_patient_id: int,
    appointment_type: str = "consultation",
    visit_reason: str = "",
    location: Optional[dict[str, Any]] = None,
    notes: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
) -> Appointment:
    """Create an appointment and bind it to its slot in one transaction."""
    try:
        relation = await get_doctor_patient(db, doctor_patient_id)
        if relation is None:
            raise NotFoundError("Doctor-patient relationship not found", doctor_patient_id=doctor_patient_id)

        slot = await get_slot(db, slot_id)
        if slot is None:
            raise NotFoundError("Time slot not found", slot_id=slot_id)
        if slot.doctor_id != relation.doctor_id:
            raise ValidationError("Slot belongs to a different doctor", slot_id=slot_id)

        appt = await create_appointment(
            db,
            doctor_patient_id=doctor_patient_id,
            appointment_date_time=combine(slot.date, slot.time),
            duration=time_to_minutes(slot.end_time) - time_to_minutes(slot.time),
            appointment_type=appointment_type,
            visit_reason=visit_reason,
            location=location,
            notes=notes,
        )
        await claim_slot(db, slot_id, appt.id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("appointment_booked", appointment_id=appt.id, slot_id=slot_id)

    await send_notification(
        notifier,
        recipient_id=relation.patient.user_id,
        recipient_type="patient",
        type="appointment_scheduled",
        title="Appointment Scheduled",
        message=(
            f"Your appointment with {relation.doctor.display_name} has been scheduled for "
            f"{appt.appointment_date_time.strftime('%A, %B %d at %H:%M')}."
        ),
        action_url="/patient/appointments",
        related_records={"patient_id": relation.patient_id, "doctor_id": relation.doctor_id,
                         "appointment_id": appt.id},
    )
    return appt


async def cancel_appointment(
    db: AsyncSession,
    appointment_id: int,
    *,
    reason: Optional[str] = None,
) -> dict[str, Any]:
    """Cancel and give every bound slot back to the pool."""
    try:
        appt = await get_appointment(db, appointment_id)
        if appt is None:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        if appt.is_closed:
            raise StateError(f"Appointment is already {appt.status}", appointment_id=appointment_id)

        slots = await slots_for_appointment(db, appointment_id)
        released = await mark_available(db, [s.id for s in slots])
        appt.status = "cancelled"
        if reason:
            appt.notes = f"{appt.notes}\n{reason}" if appt.notes else reason
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("appointment_cancelled", appointment_id=appointment_id, released_slots=released)
    return {"appointment_id": appointment_id, "released_slots": released}


# ---------- Slot reads ----------

async def get_available_slots(db: AsyncSession, doctor_id: int, on: date | str) -> list[TimeSlot]:
    day = parse_date(on)
    return list(await list_slots(db, doctor_id=doctor_id, start=day, end=day, slot_type=SLOT_AVAILABLE))


async def get_available_slots_in_range(
    db: AsyncSession, doctor_id: int, start_date: date | str, end_date: date | str
) -> dict[date, list[TimeSlot]]:
    slots = await list_slots(db, doctor_id=doctor_id, start=parse_date(start_date),
                             end=parse_date(end_date), slot_type=SLOT_AVAILABLE)
    by_date: dict[date, list[TimeSlot]] = defaultdict(list)
    for slot in slots:
        by_date[slot.date].append(slot)
    return dict(by_date)


async def get_doctor_day_slots(db: AsyncSession, doctor_id: int, on: date | str) -> list[TimeSlot]:
    day = parse_date(on)
    return list(await list_slots(db, doctor_id=doctor_id, start=day, end=day))


def slot_counts(slots: list[TimeSlot]) -> dict[str, Any]:
    """Counts per slot type plus utilization = booked / non-break slots, in percent."""
    counts = {
        "total": len(slots),
        "available": sum(1 for s in slots if s.slot_type == SLOT_AVAILABLE),
        "booked": sum(1 for s in slots if s.slot_type == SLOT_BOOKED),
        "blocked": sum(1 for s in slots if s.slot_type == SLOT_BLOCKED),
        "break": sum(1 for s in slots if s.slot_type == SLOT_BREAK),
    }
    bookable = counts["total"] - counts["break"]
    counts["utilization_rate"] = round(counts["booked"] / bookable * 100, 2) if bookable > 0 else 0.0
    return counts


async def get_doctor_slot_stats(
    db: AsyncSession, doctor_id: int, start_date: date | str, end_date: date | str
) -> dict[str, Any]:
    slots = list(await list_slots(db, doctor_id=doctor_id, start=parse_date(start_date),
                                  end=parse_date(end_date)))
    return slot_counts(slots)
