# app/crud/records.py
"""Lookups of the profile records scheduling depends on but does not own."""
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.db.models.doctor import Doctor, DoctorPatient, Patient
from app.db.models.user import User


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def get_doctor(db: AsyncSession, doctor_id: int) -> Optional[Doctor]:
    return await db.get(Doctor, doctor_id)


async def get_patient(db: AsyncSession, patient_id: int) -> Optional[Patient]:
    return await db.get(Patient, patient_id)


async def get_doctor_patient(db: AsyncSession, doctor_patient_id: int) -> Optional[DoctorPatient]:
    """Loads doctor and patient with it, also for rows already in the identity map."""
    res = await db.execute(
        sa.select(DoctorPatient)
        .where(DoctorPatient.id == doctor_patient_id)
        .execution_options(populate_existing=True)
    )
    return res.unique().scalars().first()


async def require_doctor(db: AsyncSession, doctor_id: int) -> Doctor:
    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise NotFoundError("Doctor not found", doctor_id=doctor_id)
    return doctor


async def list_active_doctors(db: AsyncSession) -> Sequence[Doctor]:
    res = await db.execute(
        sa.select(Doctor)
        .where(Doctor.is_active.is_(True), Doctor.is_verified.is_(True))
        .order_by(Doctor.id.asc())
    )
    return res.scalars().all()
