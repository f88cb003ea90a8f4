# app/api/routes/reschedule.py

from __future__ import annotations
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.schemas.reschedule import (
    RescheduleApprove,
    RescheduleCreate,
    RescheduleDetailOut,
    RescheduleOut,
    RescheduleReject,
)
from app.services import reschedule

router = APIRouter(prefix="/reschedule-requests", tags=["reschedule"])

RequestStatus = Literal["pending", "approved", "rejected", "cancelled"]


def _detail(item: dict[str, Any]) -> RescheduleDetailOut:
    party = item.get("patient") or item.get("doctor")
    name = None
    if party is not None:
        name = getattr(party, "display_name", None) or f"{party.first_name} {party.last_name}"
    return RescheduleDetailOut.model_validate({**item, "party_name": name}, from_attributes=True)


@router.post("", response_model=RescheduleOut, status_code=201)
async def create_request(payload: RescheduleCreate, db: AsyncSession = Depends(get_session)):
    return await reschedule.create_reschedule_request(db, **payload.model_dump())


@router.post("/{request_id}/approve", response_model=RescheduleOut)
async def approve(request_id: int, payload: RescheduleApprove, db: AsyncSession = Depends(get_session)):
    return await reschedule.approve_request(
        db, request_id, responded_by=payload.responded_by, admin_notes=payload.admin_notes
    )


@router.post("/{request_id}/reject", response_model=RescheduleOut)
async def reject(request_id: int, payload: RescheduleReject, db: AsyncSession = Depends(get_session)):
    return await reschedule.reject_request(
        db, request_id, admin_notes=payload.admin_notes, responded_by=payload.responded_by
    )


@router.post("/{request_id}/cancel", response_model=RescheduleOut)
async def cancel(request_id: int, db: AsyncSession = Depends(get_session)):
    return await reschedule.cancel_request(db, request_id)


@router.get("/by-doctor/{doctor_id}", response_model=List[RescheduleDetailOut])
async def by_doctor(doctor_id: int, status: Optional[RequestStatus] = None,
                    limit: int = Query(50, ge=1, le=500), db: AsyncSession = Depends(get_session)):
    return [_detail(i) for i in await reschedule.get_requests_by_doctor(db, doctor_id, status, limit)]


@router.get("/by-patient/{patient_id}", response_model=List[RescheduleDetailOut])
async def by_patient(patient_id: int, status: Optional[RequestStatus] = None,
                     limit: int = Query(20, ge=1, le=500), db: AsyncSession = Depends(get_session)):
    return [_detail(i) for i in await reschedule.get_requests_by_patient(db, patient_id, status, limit)]
