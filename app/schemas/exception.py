# app/schemas/exception.py

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict

from app.core.config import BlockPolicy
from app.schemas.common import HHMM

ExceptionType = Literal["vacation", "sick", "conference", "emergency", "personal", "training"]


class RecurringPattern(BaseModel):
    frequency: Literal["weekly", "monthly"]
    interval: int = Field(1, ge=1)
    end_date: Optional[date] = None


class ExceptionCreate(BaseModel):
    doctor_id: int
    date: date
    exception_type: ExceptionType
    start_time: Optional[HHMM] = Field(None, description="Omit both times for a full day")
    end_time: Optional[HHMM] = None
    reason: str = ""
    is_recurring: bool = False
    recurring_pattern: Optional[RecurringPattern] = None
    created_by: Optional[int] = None
    policy: Optional[BlockPolicy] = None

    @model_validator(mode="after")
    def _pattern_when_recurring(self):
        if self.is_recurring and self.recurring_pattern is None:
            raise ValueError("recurring_pattern is required when is_recurring is true")
        return self


class ExceptionUpdate(BaseModel):
    reason: str


class ExceptionOut(BaseModel):
    id: int
    doctor_id: int
    date: date
    exception_type: str
    start_time: Optional[HHMM] = None
    end_time: Optional[HHMM] = None
    reason: str
    affected_slots: List[int]
    is_recurring: bool
    recurring_pattern: Optional[RecurringPattern] = None
    created_at: datetime
    created_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class ExceptionCreated(BaseModel):
    exception_id: int
    affected_slots_count: int
    affected_appointments: List[int]


class ExceptionDeleted(BaseModel):
    deleted_exception_id: int
    restored_slots_count: int
    rebooked_slots_count: int


class ExceptionStats(BaseModel):
    total: int
    vacation: int
    sick: int
    conference: int
    emergency: int
    personal: int
    training: int
    recurring: int


class DateAvailabilityOut(BaseModel):
    is_available: bool
    exceptions: List[ExceptionOut]


class RecurringInstance(BaseModel):
    original_exception_id: int
    doctor_id: int
    date: date
    exception_type: str
    start_time: Optional[HHMM] = None
    end_time: Optional[HHMM] = None
    reason: str
    is_generated_instance: bool = True


class RecurringExceptionsOut(BaseModel):
    recurring_exceptions: List[ExceptionOut]
    future_instances: List[RecurringInstance]
