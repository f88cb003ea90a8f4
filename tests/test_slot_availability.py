#!/usr/bin/env python3
"""
Tests for the read-only availability queries.
"""

import pytest
from datetime import date, datetime, time, timedelta

from app.crud.time_slot import insert_slots
from app.db.models.time_slot import SLOT_AVAILABLE, TimeSlot
from app.services.availability_templates import set_doctor_availability
from app.services.booking import block_time_slots, book_appointment
from app.services.slot_availability import (
    bulk_check_availability,
    check_slot_availability,
    find_alternative_slots,
    get_multi_doctor_availability,
    get_next_available_slot,
    get_peak_availability_times,
    get_weekly_availability_summary,
    score_alternative,
)
from app.services.slot_generator import generate_time_slots

from conftest import MONDAY, WORKDAY


async def manual_slot(db, doctor_id, day, at):
    end = (datetime.combine(day, at) + timedelta(minutes=30)).time()
    ids = await insert_slots(db, [TimeSlot(doctor_id=doctor_id, date=day, time=at, end_time=end,
                                           slot_type=SLOT_AVAILABLE, generated_from="manual")])
    await db.commit()
    return ids[0]


class TestScoring:
    """Alternative slot ranking"""

    @pytest.mark.unit
    def test_score_formula(self):
        slot = TimeSlot(date=date(2025, 3, 5), time=time(10, 0))
        assert score_alternative(slot, datetime(2025, 3, 5, 10, 0)) == (100.0, 0.0)
        score, days = score_alternative(slot, datetime(2025, 3, 4, 22, 0))
        assert days == 0.5
        assert score == 95.0
        assert score_alternative(slot, datetime(2025, 2, 20, 10, 0))[0] == 0.0

    @pytest.mark.asyncio
    async def test_alternatives_ranked_by_distance(self, db, clinic):
        doctor_id = clinic.doctor.id
        same = await manual_slot(db, doctor_id, date(2025, 3, 10), time(10, 0))
        five_days = await manual_slot(db, doctor_id, date(2025, 3, 15), time(10, 0))
        ten_days = await manual_slot(db, doctor_id, date(2025, 3, 20), time(10, 0))
        eleven_days = await manual_slot(db, doctor_id, date(2025, 2, 27), time(10, 0))

        result = await find_alternative_slots(db, doctor_id, "2025-03-10", "10:00", search_radius=11)
        ranked = [(a["slot"].id, a["score"]) for a in result["alternative_slots"]]
        # zero scores fall back to chronological order
        assert ranked == [(same, 100.0), (five_days, 50.0), (eleven_days, 0.0), (ten_days, 0.0)]
        assert result["total_found"] == 4
        assert result["search_radius"] == 11
        assert result["preferred_date_time"] == datetime(2025, 3, 10, 10, 0)
        assert result["alternative_slots"][0]["is_preferred_date"]
        assert result["alternative_slots"][0]["is_preferred_time"]

    @pytest.mark.asyncio
    async def test_alternatives_respect_radius_and_limit(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        await manual_slot(db, doctor_id, date(2025, 3, 20), time(10, 0))

        result = await find_alternative_slots(db, doctor_id, MONDAY, "12:00", search_radius=2, max_results=3)
        assert result["total_found"] == 16
        assert [a["slot"].time for a in result["alternative_slots"]] == [time(12, 0), time(11, 30), time(12, 30)]


class TestChecks:
    """Point and bulk availability checks"""

    @pytest.mark.asyncio
    async def test_check_single(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        await block_time_slots(db, doctor_id, MONDAY, "10:00", "10:30", "Admin")

        assert (await check_slot_availability(db, doctor_id, MONDAY, "09:00"))["is_available"]

        blocked = await check_slot_availability(db, doctor_id, MONDAY, "10:00")
        assert blocked["is_available"] is False
        assert blocked["reason"] == "Slot is blocked"

        missing = await check_slot_availability(db, doctor_id, MONDAY, "20:00")
        assert missing["slot"] is None
        assert missing["is_available"] is False

    @pytest.mark.asyncio
    async def test_bulk_keeps_input_order(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        await book_appointment(db, slot_id=monday_slots[1], doctor_patient_id=clinic.relation.id)

        results = await bulk_check_availability(db, [
            {"doctor_id": doctor_id, "date": "2025-03-03", "time": "09:30"},
            {"doctor_id": doctor_id, "date": "2025-03-03", "time": "09:00"},
            {"doctor_id": doctor_id, "date": "2025-03-04", "time": "09:00"},
        ])
        assert [r["slot_type"] for r in results] == ["booked", "available", "not_found"]
        assert [r["is_available"] for r in results] == [False, True, False]
        assert results[0]["slot_id"] == monday_slots[1]
        assert results[2]["slot_id"] is None


class TestSummaries:
    """Next slot, weekly summary, multi-doctor and peak times"""

    @pytest.mark.asyncio
    async def test_next_available(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        await block_time_slots(db, doctor_id, MONDAY, "09:00", "10:00", "Admin")

        found = await get_next_available_slot(db, doctor_id, "2025-03-01")
        assert found["slot"].time == time(10, 0)
        assert found["date_time"] == datetime(2025, 3, 3, 10, 0)
        assert found["doctor"].id == doctor_id

        assert await get_next_available_slot(db, doctor_id, "2025-03-04") is None

    @pytest.mark.asyncio
    async def test_weekly_summary(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        for slot_id in monday_slots[:4]:
            await book_appointment(db, slot_id=slot_id, doctor_patient_id=clinic.relation.id)

        summary = await get_weekly_availability_summary(db, doctor_id, "2025-03-02")
        assert summary["week_end_date"] == date(2025, 3, 8)
        assert len(summary["daily_stats"]) == 7

        sunday, monday = summary["daily_stats"][:2]
        assert sunday["day_name"] == "Sunday"
        assert sunday["total"] == 0
        assert sunday["utilization_rate"] == 0.0
        assert monday["day_name"] == "Monday"
        assert monday["booked"] == 4
        assert monday["available"] == 12
        assert monday["utilization_rate"] == 25.0
        assert summary["week_total"]["total"] == 16

    @pytest.mark.asyncio
    async def test_multi_doctor(self, db, clinic, other_doctor, monday_slots):
        doctor_id, other_id = clinic.doctor.id, other_doctor.id
        await set_doctor_availability(db, other_id, day_of_week=1, **{**WORKDAY, "end_time": "12:00"})
        await generate_time_slots(db, other_id, MONDAY, MONDAY)

        result = await get_multi_doctor_availability(db, [doctor_id, other_id], MONDAY, MONDAY)
        assert [r["doctor_id"] for r in result] == [doctor_id, other_id]
        assert [r["total_slots"] for r in result] == [16, 6]
        assert list(result[1]["slots_by_date"]) == [MONDAY]
        assert result[1]["doctor"].last_name == "Wilson"

    @pytest.mark.asyncio
    async def test_peak_times(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        next_monday = MONDAY + timedelta(days=7)
        await generate_time_slots(db, doctor_id, next_monday, next_monday)
        # 09:00 is open on both Mondays, 09:30 only on the second one
        await block_time_slots(db, doctor_id, MONDAY, "09:30", "17:00", "Half day")

        result = await get_peak_availability_times(db, doctor_id, MONDAY, next_monday)
        assert result["total_slots"] == 17
        top = result["peak_times"]
        assert len(top) == 5
        assert top[0] == {"time": "09:00", "count": 2, "dates": [MONDAY, next_monday]}
        assert [t["time"] for t in top[1:]] == ["09:30", "10:00", "10:30", "11:00"]
        assert all(t["count"] == 1 for t in top[1:])
