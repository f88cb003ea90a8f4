# app/schemas/appointment.py

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

AppointmentType = Literal["new_patient", "follow_up", "consultation", "procedure", "telemedicine", "emergency"]


class AppointmentCreate(BaseModel):
    slot_id: int
    doctor_patient_id: int
    appointment_type: AppointmentType = "consultation"
    visit_reason: str = Field("", examples=["Annual physical"])
    location: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None


class AppointmentOut(BaseModel):
    id: int
    doctor_patient_id: int
    appointment_date_time: datetime
    duration: int
    appointment_type: str
    visit_reason: str
    location: Optional[Dict[str, Any]] = None
    status: str
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AppointmentCancelled(BaseModel):
    appointment_id: int
    released_slots: int
