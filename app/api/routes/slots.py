# app/api/routes/slots.py

from __future__ import annotations
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.schemas.common import HHMM
from app.schemas.slot import (
    AlternativesOut,
    BlockSlotsIn,
    BlockSlotsOut,
    BookSlotIn,
    BulkCheckIn,
    DoctorAvailabilityOut,
    GenerateSlotsIn,
    GenerateSlotsOut,
    NextSlotOut,
    PeakTimesOut,
    SlotAvailabilityOut,
    SlotCheckOut,
    SlotOut,
    SlotStatsOut,
    WeeklySummaryOut,
)
from app.services import booking, slot_availability
from app.services.slot_generator import generate_time_slots

router = APIRouter(prefix="/slots", tags=["slots"])


# -------- Mutations --------

@router.post("/generate", response_model=GenerateSlotsOut, status_code=201)
async def generate(payload: GenerateSlotsIn, db: AsyncSession = Depends(get_session)):
    return await generate_time_slots(db, payload.doctor_id, payload.start_date, payload.end_date)


@router.post("/{slot_id}/book", response_model=SlotOut)
async def book(slot_id: int, payload: BookSlotIn, db: AsyncSession = Depends(get_session)):
    return await booking.book_time_slot(db, slot_id, payload.appointment_id)


@router.post("/{slot_id}/release", response_model=SlotOut)
async def release(slot_id: int, db: AsyncSession = Depends(get_session)):
    return await booking.release_time_slot(db, slot_id)


@router.post("/block", response_model=BlockSlotsOut)
async def block(payload: BlockSlotsIn, db: AsyncSession = Depends(get_session)):
    return await booking.block_time_slots(
        db,
        payload.doctor_id,
        payload.date,
        payload.start_time,
        payload.end_time,
        payload.reason,
        policy=payload.policy,
    )


# -------- Queries --------

@router.get("/available", response_model=List[SlotOut])
async def available(doctor_id: int, on: date = Query(..., alias="date"), db: AsyncSession = Depends(get_session)):
    return await booking.get_available_slots(db, doctor_id, on)


@router.get("/available/range", response_model=Dict[date, List[SlotOut]])
async def available_in_range(doctor_id: int, start_date: date, end_date: date,
                             db: AsyncSession = Depends(get_session)):
    return await booking.get_available_slots_in_range(db, doctor_id, start_date, end_date)


@router.get("/day", response_model=List[SlotOut])
async def day_slots(doctor_id: int, on: date = Query(..., alias="date"), db: AsyncSession = Depends(get_session)):
    return await booking.get_doctor_day_slots(db, doctor_id, on)


@router.get("/stats", response_model=SlotStatsOut)
async def stats(doctor_id: int, start_date: date, end_date: date, db: AsyncSession = Depends(get_session)):
    return await booking.get_doctor_slot_stats(db, doctor_id, start_date, end_date)


@router.get("/next", response_model=Optional[NextSlotOut])
async def next_available(doctor_id: int, from_date: Optional[date] = None,
                         db: AsyncSession = Depends(get_session)):
    result = await slot_availability.get_next_available_slot(db, doctor_id, from_date)
    if result is None:
        return None
    return NextSlotOut.model_validate(result, from_attributes=True)


@router.get("/weekly-summary", response_model=WeeklySummaryOut)
async def weekly_summary(doctor_id: int, week_start_date: date, db: AsyncSession = Depends(get_session)):
    return await slot_availability.get_weekly_availability_summary(db, doctor_id, week_start_date)


@router.get("/alternatives", response_model=AlternativesOut)
async def alternatives(
    doctor_id: int,
    preferred_date: date,
    preferred_time: HHMM,
    search_radius: Optional[int] = Query(None, ge=0),
    max_results: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
):
    result = await slot_availability.find_alternative_slots(
        db, doctor_id, preferred_date, preferred_time, search_radius, max_results
    )
    return AlternativesOut.model_validate(result, from_attributes=True)


@router.get("/check", response_model=SlotAvailabilityOut)
async def check(doctor_id: int, time: HHMM, on: date = Query(..., alias="date"),
                db: AsyncSession = Depends(get_session)):
    result = await slot_availability.check_slot_availability(db, doctor_id, on, time)
    return SlotAvailabilityOut.model_validate(result, from_attributes=True)


@router.post("/check/bulk", response_model=List[SlotCheckOut])
async def bulk_check(payload: BulkCheckIn, db: AsyncSession = Depends(get_session)):
    return await slot_availability.bulk_check_availability(db, [c.model_dump() for c in payload.slot_checks])


@router.get("/multi-doctor", response_model=List[DoctorAvailabilityOut])
async def multi_doctor(
    start_date: date,
    end_date: date,
    doctor_ids: List[int] = Query(...),
    db: AsyncSession = Depends(get_session),
):
    rows = await slot_availability.get_multi_doctor_availability(db, doctor_ids, start_date, end_date)
    return [
        DoctorAvailabilityOut.model_validate(
            {**row, "doctor_name": row["doctor"].display_name if row["doctor"] else None},
            from_attributes=True,
        )
        for row in rows
    ]


@router.get("/peak-times", response_model=PeakTimesOut)
async def peak_times(doctor_id: int, start_date: date, end_date: date, db: AsyncSession = Depends(get_session)):
    return await slot_availability.get_peak_availability_times(db, doctor_id, start_date, end_date)
