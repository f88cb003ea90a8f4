# app/schemas/reschedule.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from app.schemas.appointment import AppointmentOut
from app.schemas.slot import SlotOut


class RescheduleCreate(BaseModel):
    appointment_id: int
    reason: str = Field(..., min_length=1)
    requested_slot_id: Optional[int] = None
    requested_date_time: Optional[datetime] = Field(None, description="Preference only, clinic local time")


class RescheduleApprove(BaseModel):
    responded_by: Optional[int] = None
    admin_notes: Optional[str] = None


class RescheduleReject(BaseModel):
    responded_by: Optional[int] = None
    admin_notes: str

    @field_validator("admin_notes")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("admin_notes is required when rejecting")
        return v


class RescheduleOut(BaseModel):
    id: int
    appointment_id: int
    patient_id: int
    doctor_id: int
    current_date_time: datetime
    requested_slot_id: Optional[int] = None
    requested_date_time: Optional[datetime] = None
    reason: str
    status: str
    requested_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[int] = None
    admin_notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class RescheduleDetailOut(BaseModel):
    request: RescheduleOut
    appointment: Optional[AppointmentOut] = None
    requested_slot: Optional[SlotOut] = None
    party_name: Optional[str] = None
