#!/usr/bin/env python3
"""
Tests for weekly availability templates.
"""

import pytest
from datetime import time

from app.core.errors import NotFoundError, ValidationError
from app.services.availability_templates import (
    delete_doctor_availability,
    get_doctor_availability,
    get_doctor_availability_by_day,
    get_doctor_availability_summary,
    set_doctor_availability,
    set_weekly_availability,
    validate_availability_times,
)

from conftest import WORKDAY


class TestValidation:
    """Working window and break checks"""

    @pytest.mark.unit
    def test_valid_window(self):
        breaks = [{"start_time": "12:00", "end_time": "13:00", "reason": "Lunch"}]
        assert validate_availability_times("09:00", "17:00", breaks) == []

    @pytest.mark.unit
    def test_reversed_window(self):
        assert validate_availability_times("17:00", "09:00") == ["Start time must be before end time"]

    @pytest.mark.unit
    def test_break_outside_hours(self):
        errors = validate_availability_times("09:00", "17:00", [
            {"start_time": "08:00", "end_time": "09:30", "reason": "Early"},
        ])
        assert errors == ['Break "Early": must be within working hours']

    @pytest.mark.unit
    def test_overlapping_breaks(self):
        errors = validate_availability_times("09:00", "17:00", [
            {"start_time": "12:00", "end_time": "13:00", "reason": "Lunch"},
            {"start_time": "12:30", "end_time": "13:30", "reason": "Walk"},
        ])
        assert errors == ['Breaks "Lunch" and "Walk" overlap']

    @pytest.mark.unit
    def test_adjacent_breaks_are_fine(self):
        errors = validate_availability_times("09:00", "17:00", [
            {"start_time": "12:00", "end_time": "12:30"},
            {"start_time": "12:30", "end_time": "13:00"},
        ])
        assert errors == []


class TestTemplates:
    """Saving and reading templates"""

    @pytest.mark.asyncio
    async def test_upsert_replaces_the_day(self, db, clinic):
        doctor_id = clinic.doctor.id
        first = await set_doctor_availability(db, doctor_id, day_of_week=2, **WORKDAY)
        second = await set_doctor_availability(
            db, doctor_id, day_of_week=2, start_time="08:00", end_time="12:00", slot_duration=20
        )
        assert first.id == second.id
        template = await get_doctor_availability_by_day(db, doctor_id, 2)
        assert template.start_time == time(8, 0)
        assert template.slot_duration == 20
        assert len(await get_doctor_availability(db, doctor_id)) == 1

    @pytest.mark.asyncio
    async def test_breaks_are_normalized(self, db, clinic):
        template = await set_doctor_availability(
            db, clinic.doctor.id, day_of_week=3, start_time="9:00", end_time="17:00", slot_duration=30,
            break_times=[{"start_time": "15:00", "end_time": "15:15"},
                         {"start_time": "12:00", "end_time": "13:00", "reason": "Lunch"}],
        )
        assert template.break_times == [
            {"start_time": "12:00", "end_time": "13:00", "reason": "Lunch"},
            {"start_time": "15:00", "end_time": "15:15", "reason": ""},
        ]

    @pytest.mark.asyncio
    async def test_invalid_template(self, db, clinic):
        doctor_id = clinic.doctor.id
        with pytest.raises(ValidationError) as exc:
            await set_doctor_availability(db, doctor_id, day_of_week=7, start_time="09:00",
                                          end_time="17:00", slot_duration=0, buffer_time=-5)
        assert len(exc.value.extra["errors"]) == 3
        assert await get_doctor_availability(db, doctor_id) == []

    @pytest.mark.asyncio
    async def test_unknown_doctor(self, db):
        with pytest.raises(NotFoundError):
            await set_doctor_availability(db, 31337, day_of_week=1, **WORKDAY)

    @pytest.mark.asyncio
    async def test_weekly_is_all_or_nothing(self, db, clinic):
        doctor_id = clinic.doctor.id
        week = [{"day_of_week": d, **WORKDAY} for d in (1, 2, 3)]
        week.append({"day_of_week": 4, **WORKDAY, "end_time": "08:00"})

        with pytest.raises(ValidationError):
            await set_weekly_availability(db, doctor_id, week)
        assert await get_doctor_availability(db, doctor_id) == []

        ids = await set_weekly_availability(db, doctor_id, week[:3])
        assert len(ids) == 3

    @pytest.mark.asyncio
    async def test_delete_and_summary(self, db, clinic):
        doctor_id = clinic.doctor.id
        await set_doctor_availability(
            db, doctor_id, day_of_week=1, **{**WORKDAY, "break_times": [
                {"start_time": "12:00", "end_time": "13:00", "reason": "Lunch"},
                {"start_time": "15:00", "end_time": "15:15", "reason": "Coffee"},
            ]}
        )
        await set_doctor_availability(db, doctor_id, day_of_week=5, **WORKDAY)
        await set_doctor_availability(db, doctor_id, day_of_week=6, is_active=False, **WORKDAY)

        summary = await get_doctor_availability_summary(db, doctor_id)
        assert [s["day_name"] for s in summary] == ["Monday", "Friday"]
        assert summary[0]["break_count"] == 2
        assert summary[0]["total_break_time"] == 75
        assert summary[0]["start_time"] == "09:00"

        assert await delete_doctor_availability(db, doctor_id, 5) is True
        assert await delete_doctor_availability(db, doctor_id, 5) is False
        assert len(await get_doctor_availability(db, doctor_id, active_only=True)) == 1
