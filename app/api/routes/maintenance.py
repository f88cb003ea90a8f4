# app/api/routes/maintenance.py

from __future__ import annotations
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.services import slot_maintenance as maintenance

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/generate-all")
async def generate_all(days_ahead: Optional[int] = Query(None, ge=1, le=365),
                       db: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await maintenance.generate_slots_for_all_doctors(db, days_ahead)


@router.post("/generate-missing")
async def generate_missing(doctor_id: int, start_date: date, end_date: date,
                           db: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await maintenance.generate_missing_slots(db, doctor_id, start_date, end_date)


@router.post("/cleanup")
async def cleanup(older_than_days: Optional[int] = Query(None, ge=0),
                  db: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await maintenance.cleanup_old_slots(db, older_than_days)


@router.get("/optimize")
async def optimize(doctor_id: int, on: date = Query(..., alias="date"),
                   db: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await maintenance.optimize_doctor_slots(db, doctor_id, on)


@router.get("/stats")
async def stats(days_back: int = Query(30, ge=1, le=365),
                db: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await maintenance.get_maintenance_stats(db, days_back)
