# app/services/reschedule.py
"""
Patient reschedule requests: pending -> approved | rejected | cancelled.

Every status change is a conditional UPDATE on status = 'pending', so two
admins acting on the same request cannot both win. Approval with a slot
books it through the same compare-and-set the booking engine uses.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.core.logging import get_logger
from app.core.timeutils import combine, time_to_minutes
from app.crud.appointment import get_appointment
from app.crud.records import get_doctor, get_doctor_patient, get_patient
from app.crud.time_slot import get_slot, mark_available, slots_for_appointment
from app.db.models.reschedule_request import (
    AppointmentRescheduleRequest,
    REQUEST_APPROVED,
    REQUEST_CANCELLED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
)
from app.db.models.time_slot import SLOT_AVAILABLE
from app.services.booking import claim_slot, require_live_appointment
from app.services.notifications import NotificationSink, send_notification

logger = get_logger(__name__)

RescheduleRequest = AppointmentRescheduleRequest


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _get_request(db: AsyncSession, request_id: int, *, fresh: bool = False) -> RescheduleRequest:
    request = await db.get(RescheduleRequest, request_id, populate_existing=fresh)
    if request is None:
        raise NotFoundError("Reschedule request not found", request_id=request_id)
    return request


async def _pending_request_for(db: AsyncSession, appointment_id: int) -> Optional[RescheduleRequest]:
    res = await db.execute(
        sa.select(RescheduleRequest).where(
            RescheduleRequest.appointment_id == appointment_id,
            RescheduleRequest.status == REQUEST_PENDING,
        )
    )
    return res.scalars().first()


async def _resolve(db: AsyncSession, request_id: int, status: str, **values: Any) -> RescheduleRequest:
    """Move a pending request to a terminal status or raise StateError."""
    res = await db.execute(
        sa.update(RescheduleRequest)
        .where(RescheduleRequest.id == request_id, RescheduleRequest.status == REQUEST_PENDING)
        .values(status=status, updated_at=_now(), **values)
        .execution_options(synchronize_session="evaluate")
    )
    request = await _get_request(db, request_id, fresh=True)
    if res.rowcount != 1:
        raise StateError(f"Request has already been {request.status}", request_id=request_id,
                         status=request.status)
    return request


async def create_reschedule_request(
    db: AsyncSession,
    *,
    appointment_id: int,
    reason: str,
    requested_slot_id: Optional[int] = None,
    requested_date_time: Optional[datetime] = None,
    notifier: Optional[NotificationSink] = None,
) -> RescheduleRequest:
    try:
        appointment = await get_appointment(db, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        relation = await get_doctor_patient(db, appointment.doctor_patient_id)
        if relation is None:
            raise NotFoundError("Doctor-patient relationship not found",
                                doctor_patient_id=appointment.doctor_patient_id)
        doctor = await get_doctor(db, relation.doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor not found", doctor_id=relation.doctor_id)
        if appointment.is_closed:
            raise StateError(f"Cannot reschedule an appointment that is {appointment.status}",
                             appointment_id=appointment_id)

        if await _pending_request_for(db, appointment_id):
            raise StateError("There is already a pending reschedule request for this appointment",
                             appointment_id=appointment_id)

        if requested_slot_id is not None:
            slot = await get_slot(db, requested_slot_id)
            if slot is None:
                raise NotFoundError("Requested time slot not found", slot_id=requested_slot_id)
            if slot.doctor_id != relation.doctor_id:
                raise ValidationError("Requested slot must be with the same doctor",
                                      slot_id=requested_slot_id)
            if slot.slot_type != SLOT_AVAILABLE:
                raise ConflictError("Requested time slot is not available", slot_id=requested_slot_id)

        now = _now()
        request = RescheduleRequest(
            appointment_id=appointment_id,
            patient_id=relation.patient_id,
            doctor_id=relation.doctor_id,
            current_date_time=appointment.appointment_date_time,
            requested_slot_id=requested_slot_id,
            requested_date_time=requested_date_time,
            reason=reason,
            status=REQUEST_PENDING,
            requested_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(request)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # lost the race on the one-pending-request index
        raise StateError("There is already a pending reschedule request for this appointment",
                         appointment_id=appointment_id)
    except Exception:
        await db.rollback()
        raise

    logger.info("reschedule_request_created", request_id=request.id, appointment_id=appointment_id,
                requested_slot_id=requested_slot_id)

    await send_notification(
        notifier,
        recipient_id=doctor.user_id,
        recipient_type="doctor",
        type="reschedule_request",
        title="New Reschedule Request",
        message=f"Patient has requested to reschedule their appointment. Reason: {reason}",
        action_url=f"/doctor/appointments/reschedule-requests/{request.id}",
        related_records={"patient_id": relation.patient_id, "doctor_id": relation.doctor_id,
                         "appointment_id": appointment_id},
    )
    return request


async def approve_request(
    db: AsyncSession,
    request_id: int,
    *,
    responded_by: Optional[int] = None,
    admin_notes: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
) -> RescheduleRequest:
    """
    With a requested slot: book it, free the old slot(s), move the appointment.
    Without one: record the approval only, the office arranges a time offline.
    """
    try:
        request = await _get_request(db, request_id)
        if request.status != REQUEST_PENDING:
            raise StateError(f"Request has already been {request.status}", request_id=request_id,
                             status=request.status)

        # the patient may have cancelled since filing the request
        appointment = await require_live_appointment(db, request.appointment_id)

        if request.requested_slot_id is not None:
            slot = await claim_slot(db, request.requested_slot_id, request.appointment_id)

            old_slots = await slots_for_appointment(db, request.appointment_id)
            await mark_available(db, [s.id for s in old_slots if s.id != slot.id])

            appointment.appointment_date_time = combine(slot.date, slot.time)
            appointment.duration = time_to_minutes(slot.end_time) - time_to_minutes(slot.time)
            appointment.status = "scheduled"
            appointment.updated_at = _now()

        request = await _resolve(db, request_id, REQUEST_APPROVED, admin_notes=admin_notes,
                                 responded_at=_now(), responded_by=responded_by)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("reschedule_request_approved", request_id=request_id,
                appointment_id=request.appointment_id, slot_id=request.requested_slot_id)

    await _notify_patient(
        db, notifier, request,
        type="reschedule_approved",
        title="Reschedule Request Approved",
        message=(
            "Your reschedule request has been approved and your appointment has been updated."
            if request.requested_slot_id is not None
            else "Your reschedule request has been approved. The office will contact you to schedule a new time."
        ),
    )
    return request


async def reject_request(
    db: AsyncSession,
    request_id: int,
    *,
    admin_notes: str,
    responded_by: Optional[int] = None,
    notifier: Optional[NotificationSink] = None,
) -> RescheduleRequest:
    if not admin_notes or not admin_notes.strip():
        raise ValidationError("A reason is required to reject a reschedule request")
    try:
        await _get_request(db, request_id)
        request = await _resolve(db, request_id, REQUEST_REJECTED, admin_notes=admin_notes,
                                 responded_at=_now(), responded_by=responded_by)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("reschedule_request_rejected", request_id=request_id)

    await _notify_patient(
        db, notifier, request,
        type="reschedule_rejected",
        title="Reschedule Request Declined",
        message=f"Your reschedule request has been declined. Reason: {admin_notes}",
    )
    return request


async def cancel_request(db: AsyncSession, request_id: int) -> RescheduleRequest:
    """Patient withdraws a pending request. Slots are not touched."""
    try:
        await _get_request(db, request_id)
        request = await _resolve(db, request_id, REQUEST_CANCELLED)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("reschedule_request_cancelled", request_id=request_id)
    return request


async def _notify_patient(db: AsyncSession, notifier: Optional[NotificationSink],
                          request: RescheduleRequest, **payload: Any) -> None:
    patient = await get_patient(db, request.patient_id)
    if patient is None:
        logger.warning("reschedule_notification_skipped", request_id=request.id, reason="patient_missing")
        return
    await send_notification(
        notifier,
        recipient_id=patient.user_id,
        recipient_type="patient",
        action_url="/patient/appointments",
        related_records={"patient_id": request.patient_id, "doctor_id": request.doctor_id,
                         "appointment_id": request.appointment_id},
        **payload,
    )


async def _enrich(db: AsyncSession, requests: Sequence[RescheduleRequest], party: str) -> list[dict[str, Any]]:
    out = []
    for request in requests:
        item = {
            "request": request,
            "appointment": await get_appointment(db, request.appointment_id),
            "requested_slot": await get_slot(db, request.requested_slot_id) if request.requested_slot_id else None,
        }
        if party == "patient":
            item["patient"] = await get_patient(db, request.patient_id)
        else:
            item["doctor"] = await get_doctor(db, request.doctor_id)
        out.append(item)
    return out


async def _list_requests(db: AsyncSession, column, value: int, status: Optional[str], limit: int):
    q = sa.select(RescheduleRequest).where(column == value)
    if status is not None:
        q = q.where(RescheduleRequest.status == status)
    q = q.order_by(RescheduleRequest.requested_at.desc(), RescheduleRequest.id.desc()).limit(limit)
    res = await db.execute(q)
    return res.scalars().all()


async def get_requests_by_doctor(
    db: AsyncSession, doctor_id: int, status: Optional[str] = None, limit: int = 50
) -> list[dict[str, Any]]:
    requests = await _list_requests(db, RescheduleRequest.doctor_id, doctor_id, status, limit)
    return await _enrich(db, requests, "patient")


async def get_requests_by_patient(
    db: AsyncSession, patient_id: int, status: Optional[str] = None, limit: int = 20
) -> list[dict[str, Any]]:
    requests = await _list_requests(db, RescheduleRequest.patient_id, patient_id, status, limit)
    return await _enrich(db, requests, "doctor")
