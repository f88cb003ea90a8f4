# app/crud/appointment.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.appointment import Appointment
from app.db.models.doctor import DoctorPatient


async def get_appointment(db: AsyncSession, appointment_id: int, *, fresh: bool = False) -> Optional[Appointment]:
    return await db.get(Appointment, appointment_id, populate_existing=fresh)


async def create_appointment(
    db: AsyncSession,
    *,
    doctor_patient_id: int,
    appointment_date_time: datetime,
    duration: int = 30,
    appointment_type: str = "consultation",
    visit_reason: str = "",
    location: Optional[dict[str, Any]] = None,
    status: str = "scheduled",
    notes: Optional[str] = None,
) -> Appointment:
    """Insert and flush; the caller commits together with the slot booking."""
    now = datetime.now(timezone.utc)
    appt = Appointment(
        doctor_patient_id=doctor_patient_id,
        appointment_date_time=appointment_date_time,
        duration=duration,
        appointment_type=appointment_type,
        visit_reason=visit_reason,
        location=location,
        status=status,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(appt)
    await db.flush()
    return appt


async def list_appointments(
    db: AsyncSession,
    *,
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    status: Optional[str] = None,
    limit: int = 100,
) -> Sequence[Appointment]:
    q = sa.select(Appointment).join(DoctorPatient, Appointment.doctor_patient_id == DoctorPatient.id)
    if doctor_id is not None:
        q = q.where(DoctorPatient.doctor_id == doctor_id)
    if patient_id is not None:
        q = q.where(DoctorPatient.patient_id == patient_id)
    if start is not None:
        q = q.where(Appointment.appointment_date_time >= start)
    if end is not None:
        q = q.where(Appointment.appointment_date_time < end)
    if status is not None:
        q = q.where(Appointment.status == status)
    q = q.order_by(Appointment.appointment_date_time.asc()).limit(limit)
    res = await db.execute(q)
    return res.unique().scalars().all()
