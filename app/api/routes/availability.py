# app/api/routes/availability.py

from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.db.session import get_session
from app.schemas.availability import (
    AvailabilityIn,
    AvailabilityOut,
    AvailabilitySummaryOut,
    TimeValidationIn,
    TimeValidationOut,
    WeeklyAvailabilityIn,
)
from app.services import availability_templates as templates

router = APIRouter(prefix="/doctors", tags=["availability"])


@router.get("/{doctor_id}/availability", response_model=List[AvailabilityOut])
async def list_availability(doctor_id: int, db: AsyncSession = Depends(get_session)):
    return await templates.get_doctor_availability(db, doctor_id)


@router.put("/{doctor_id}/availability", response_model=AvailabilityOut)
async def set_availability(doctor_id: int, payload: AvailabilityIn, db: AsyncSession = Depends(get_session)):
    return await templates.set_doctor_availability(db, doctor_id, **payload.model_dump())


@router.put("/{doctor_id}/availability/weekly", response_model=List[int])
async def set_weekly(doctor_id: int, payload: WeeklyAvailabilityIn, db: AsyncSession = Depends(get_session)):
    return await templates.set_weekly_availability(
        db, doctor_id, [day.model_dump() for day in payload.weekly_schedule]
    )


@router.get("/{doctor_id}/availability/summary", response_model=List[AvailabilitySummaryOut])
async def availability_summary(doctor_id: int, db: AsyncSession = Depends(get_session)):
    return await templates.get_doctor_availability_summary(db, doctor_id)


@router.get("/{doctor_id}/availability/{day_of_week}", response_model=AvailabilityOut)
async def availability_for_day(doctor_id: int, day_of_week: int, db: AsyncSession = Depends(get_session)):
    template = await templates.get_doctor_availability_by_day(db, doctor_id, day_of_week)
    if template is None:
        raise NotFoundError("No availability for this day", doctor_id=doctor_id, day_of_week=day_of_week)
    return template


@router.delete("/{doctor_id}/availability/{day_of_week}")
async def delete_availability(doctor_id: int, day_of_week: int, db: AsyncSession = Depends(get_session)):
    if not await templates.delete_doctor_availability(db, doctor_id, day_of_week):
        raise NotFoundError("No availability for this day", doctor_id=doctor_id, day_of_week=day_of_week)
    return {"deleted": True}


@router.post("/availability/validate", response_model=TimeValidationOut)
async def validate_times(payload: TimeValidationIn):
    errors = templates.validate_availability_times(
        payload.start_time, payload.end_time, [b.model_dump() for b in payload.break_times]
    )
    return {"is_valid": not errors, "errors": errors}
