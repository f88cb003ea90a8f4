# app/schemas/availability.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from app.schemas.common import HHMM


class BreakTime(BaseModel):
    start_time: HHMM = Field(..., examples=["12:00"])
    end_time: HHMM = Field(..., examples=["13:00"])
    reason: Optional[str] = Field(None, examples=["Lunch"])


class AvailabilityIn(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: HHMM = Field(..., examples=["09:00"])
    end_time: HHMM = Field(..., examples=["17:00"])
    slot_duration: int = Field(30, gt=0, description="Minutes")
    buffer_time: int = Field(0, ge=0, description="Minutes between slots")
    break_times: List[BreakTime] = Field(default_factory=list)
    is_active: bool = True


class WeeklyAvailabilityIn(BaseModel):
    weekly_schedule: List[AvailabilityIn]


class AvailabilityOut(BaseModel):
    id: int
    doctor_id: int
    day_of_week: int
    start_time: HHMM
    end_time: HHMM
    slot_duration: int
    buffer_time: int
    break_times: List[BreakTime]
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AvailabilitySummaryOut(BaseModel):
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str
    slot_duration: int
    buffer_time: int
    break_count: int
    total_break_time: int


class TimeValidationIn(BaseModel):
    start_time: HHMM
    end_time: HHMM
    break_times: List[BreakTime] = Field(default_factory=list)


class TimeValidationOut(BaseModel):
    is_valid: bool
    errors: List[str]
