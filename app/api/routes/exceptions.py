# app/api/routes/exceptions.py

from __future__ import annotations
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.schemas.common import HHMM
from app.schemas.exception import (
    DateAvailabilityOut,
    ExceptionCreate,
    ExceptionCreated,
    ExceptionDeleted,
    ExceptionOut,
    ExceptionStats,
    ExceptionType,
    ExceptionUpdate,
    RecurringExceptionsOut,
)
from app.services import doctor_exceptions as exceptions

router = APIRouter(prefix="/exceptions", tags=["exceptions"])


@router.post("", response_model=ExceptionCreated, status_code=201)
async def create_exception(payload: ExceptionCreate, db: AsyncSession = Depends(get_session)):
    data = payload.model_dump(mode="json", exclude={"recurring_pattern"})
    pattern = payload.recurring_pattern.model_dump(mode="json") if payload.recurring_pattern else None
    return await exceptions.create_doctor_exception(db, **data, recurring_pattern=pattern)


@router.get("", response_model=List[ExceptionOut])
async def list_exceptions(
    doctor_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    exception_type: Optional[ExceptionType] = None,
    db: AsyncSession = Depends(get_session),
):
    if exception_type:
        return await exceptions.get_exceptions_by_type(db, doctor_id, exception_type, start_date, end_date)
    return await exceptions.get_doctor_exceptions(db, doctor_id, start_date, end_date)


@router.get("/stats", response_model=ExceptionStats)
async def exception_stats(doctor_id: int, start_date: date, end_date: date,
                          db: AsyncSession = Depends(get_session)):
    return await exceptions.get_doctor_exception_stats(db, doctor_id, start_date, end_date)


@router.get("/check", response_model=DateAvailabilityOut)
async def check_date(
    doctor_id: int,
    on: date = Query(..., alias="date"),
    at: Optional[HHMM] = Query(None, alias="time"),
    db: AsyncSession = Depends(get_session),
):
    return await exceptions.check_doctor_availability_on_date(db, doctor_id, on, at)


@router.get("/recurring", response_model=RecurringExceptionsOut)
async def recurring(doctor_id: int, look_ahead_days: Optional[int] = Query(None, ge=0),
                    db: AsyncSession = Depends(get_session)):
    return await exceptions.get_recurring_exceptions(db, doctor_id, look_ahead_days)


@router.patch("/{exception_id}", response_model=ExceptionOut)
async def update_exception(exception_id: int, payload: ExceptionUpdate, db: AsyncSession = Depends(get_session)):
    return await exceptions.update_doctor_exception(db, exception_id, reason=payload.reason)


@router.delete("/{exception_id}", response_model=ExceptionDeleted)
async def delete_exception(exception_id: int, db: AsyncSession = Depends(get_session)):
    return await exceptions.delete_doctor_exception(db, exception_id)
