# app/schemas/slot.py

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from app.core.config import BlockPolicy
from app.schemas.common import HHMM


class SlotOut(BaseModel):
    id: int
    doctor_id: int
    date: date
    time: HHMM
    end_time: HHMM
    slot_type: str
    appointment_id: Optional[int] = None
    is_recurring: bool
    generated_from: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class GenerateSlotsIn(BaseModel):
    doctor_id: int
    start_date: date = Field(..., examples=["2025-03-03"])
    end_date: date = Field(..., examples=["2025-03-09"])


class GenerateSlotsOut(BaseModel):
    generated_count: int
    start_date: date
    end_date: date
    slot_ids: List[int]
    model_config = ConfigDict(from_attributes=True)


class BookSlotIn(BaseModel):
    appointment_id: int


class BlockSlotsIn(BaseModel):
    doctor_id: int
    date: date
    start_time: Optional[HHMM] = None
    end_time: Optional[HHMM] = None
    reason: str = ""
    policy: Optional[BlockPolicy] = Field(None, description="refuse | override | skip")


class BlockSlotsOut(BaseModel):
    blocked_count: int
    blocked_slots: List[int]
    skipped_booked_slots: List[int] = Field(default_factory=list)


class SlotStatsOut(BaseModel):
    total: int
    available: int
    booked: int
    blocked: int
    # "break" is a keyword
    break_: int = Field(..., alias="break")
    utilization_rate: float
    model_config = ConfigDict(populate_by_name=True)


class NextSlotOut(BaseModel):
    slot: SlotOut
    date_time: datetime


class DayStats(BaseModel):
    date: date
    day_name: str
    total: int
    available: int
    booked: int
    blocked: int
    utilization_rate: float


class WeekTotal(BaseModel):
    total: int
    available: int
    booked: int
    blocked: int
    utilization_rate: float


class WeeklySummaryOut(BaseModel):
    week_start_date: date
    week_end_date: date
    daily_stats: List[DayStats]
    week_total: WeekTotal


class AlternativeSlot(BaseModel):
    slot: SlotOut
    score: float
    days_difference: float
    is_preferred_date: bool
    is_preferred_time: bool


class AlternativesOut(BaseModel):
    preferred_date_time: datetime
    alternative_slots: List[AlternativeSlot]
    search_radius: int
    total_found: int


class SlotCheckIn(BaseModel):
    doctor_id: int
    date: date
    time: HHMM


class BulkCheckIn(BaseModel):
    slot_checks: List[SlotCheckIn]


class SlotCheckOut(BaseModel):
    doctor_id: int
    date: date
    time: HHMM
    is_available: bool
    slot_type: str
    slot_id: Optional[int] = None


class SlotAvailabilityOut(BaseModel):
    is_available: bool
    reason: Optional[str] = None
    slot: Optional[SlotOut] = None


class DoctorAvailabilityOut(BaseModel):
    doctor_id: int
    doctor_name: Optional[str] = None
    total_slots: int
    slots_by_date: Dict[date, List[SlotOut]]


class PeakTime(BaseModel):
    time: str
    count: int
    dates: List[date]


class PeakTimesOut(BaseModel):
    peak_times: List[PeakTime]
    total_slots: int
    start_date: date
    end_date: date
