#!/usr/bin/env python3
"""
Tests for the slot housekeeping jobs.
"""

import pytest
from datetime import date, timedelta

from app.core.errors import ConfigurationError
from app.crud.time_slot import has_slots_on, list_slots
from app.services.availability_templates import set_doctor_availability
from app.services.booking import book_appointment
from app.services.slot_generator import generate_time_slots
from app.services.slot_maintenance import (
    cleanup_old_slots,
    generate_missing_slots,
    generate_slots_for_all_doctors,
    get_maintenance_stats,
    optimize_doctor_slots,
)

from conftest import MONDAY, WORKDAY


class TestGeneration:
    """Rolling generation and gap filling"""

    @pytest.mark.asyncio
    async def test_all_doctors_survives_one_failure(self, db, clinic, other_doctor):
        doctor_id = clinic.doctor.id
        await set_doctor_availability(db, doctor_id, day_of_week=1, **WORKDAY)

        result = await generate_slots_for_all_doctors(db, 6, today_=MONDAY)
        assert result["total_doctors"] == 2
        by_doctor = {r["doctor_id"]: r for r in result["results"]}
        assert by_doctor[doctor_id]["generated_count"] == 16
        # Wilson has no templates
        assert "error" in by_doctor[other_doctor.id]

    @pytest.mark.asyncio
    async def test_generate_missing(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        next_monday = MONDAY + timedelta(days=7)

        result = await generate_missing_slots(db, doctor_id, MONDAY, next_monday)
        assert result["missing_dates"] == [next_monday]
        assert result["total_generated"] == 16
        assert await has_slots_on(db, doctor_id, next_monday)

    @pytest.mark.asyncio
    async def test_generate_missing_without_templates(self, db, clinic):
        with pytest.raises(ConfigurationError):
            await generate_missing_slots(db, clinic.doctor.id, MONDAY, MONDAY)


class TestCleanup:
    """Pruning past slots"""

    @pytest.mark.asyncio
    async def test_bound_slots_are_kept(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        await book_appointment(db, slot_id=monday_slots[0], doctor_patient_id=clinic.relation.id)

        result = await cleanup_old_slots(db, 30, today_=date(2025, 5, 1))
        assert result["deleted_count"] == 15
        assert result["cutoff_date"] == date(2025, 4, 1)

        remaining = await list_slots(db, doctor_id=doctor_id)
        assert [s.id for s in remaining] == [monday_slots[0]]

    @pytest.mark.asyncio
    async def test_recent_slots_untouched(self, db, clinic, monday_slots):
        result = await cleanup_old_slots(db, 30, today_=MONDAY)
        assert result["deleted_count"] == 0


class TestReports:
    """Optimisation hints and stats"""

    @pytest.mark.asyncio
    async def test_optimize_finds_gaps_and_isolated_slots(self, db, clinic, monday_slots):
        relation_id = clinic.relation.id
        # book 09:00, 10:00 and 10:30: 09:30 is a gap and an isolated slot
        for index in (0, 2, 3):
            await book_appointment(db, slot_id=monday_slots[index], doctor_patient_id=relation_id)

        result = await optimize_doctor_slots(db, clinic.doctor.id, MONDAY)
        assert result["total_slots"] == 16
        kinds = [o["type"] for o in result["optimizations"]]
        assert kinds == ["gap_optimization", "isolated_slots"]
        assert result["optimizations"][0]["available_slots"] == [monday_slots[1]]
        assert result["optimizations"][1]["slots"] == [monday_slots[1]]
        assert result["stats"] == {"available": 13, "booked": 3, "blocked": 0}

    @pytest.mark.asyncio
    async def test_optimize_empty_day(self, db, clinic):
        result = await optimize_doctor_slots(db, clinic.doctor.id, MONDAY)
        assert result == {"date": MONDAY, "total_slots": 0, "optimizations": []}

    @pytest.mark.asyncio
    async def test_stats(self, db, clinic, monday_slots):
        for slot_id in monday_slots[:2]:
            await book_appointment(db, slot_id=slot_id, doctor_patient_id=clinic.relation.id)
        await generate_time_slots(db, clinic.doctor.id, MONDAY, MONDAY)

        stats = await get_maintenance_stats(db, 30, today_=MONDAY + timedelta(days=1))
        assert stats["slot_stats"]["total_slots"] == 16
        assert stats["slot_stats"]["booked"] == 2
        assert stats["slot_stats"]["utilization_rate"] == 12.5
        assert stats["doctor_stats"]["total_active_doctors"] == 1
        assert stats["appointment_stats"]["scheduled"] == 2
