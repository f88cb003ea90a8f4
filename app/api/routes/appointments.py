# app/api/routes/appointments.py

from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.crud.appointment import get_appointment, list_appointments
from app.db.session import get_session
from app.schemas.appointment import AppointmentCancel, AppointmentCancelled, AppointmentCreate, AppointmentOut
from app.services import booking

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentOut, status_code=201)
async def book_appointment(payload: AppointmentCreate, db: AsyncSession = Depends(get_session)):
    return await booking.book_appointment(db, **payload.model_dump())


@router.get("", response_model=List[AppointmentOut])
async def get_appointments(
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    start: Optional[date] = Query(None, description="First day, inclusive"),
    end: Optional[date] = Query(None, description="Last day, inclusive"),
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_session),
):
    return await list_appointments(
        db,
        doctor_id=doctor_id,
        patient_id=patient_id,
        start=datetime.combine(start, time.min) if start else None,
        end=datetime.combine(end + timedelta(days=1), time.min) if end else None,
        status=status,
        limit=limit,
    )


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def read_appointment(appointment_id: int, db: AsyncSession = Depends(get_session)):
    appt = await get_appointment(db, appointment_id)
    if appt is None:
        raise NotFoundError("Appointment not found", appointment_id=appointment_id)
    return appt


@router.post("/{appointment_id}/cancel", response_model=AppointmentCancelled)
async def cancel_appointment(appointment_id: int, payload: Optional[AppointmentCancel] = None,
                             db: AsyncSession = Depends(get_session)):
    return await booking.cancel_appointment(db, appointment_id, reason=payload.reason if payload else None)
