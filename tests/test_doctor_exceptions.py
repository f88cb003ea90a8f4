#!/usr/bin/env python3
"""
Tests for doctor exceptions: blocking, restoring, and recurring projection.
"""

import pytest
from datetime import date, datetime, time

from app.core.config import BlockPolicy
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.crud.appointment import create_appointment
from app.crud.time_slot import get_slot, list_slots
from app.db.models.doctor_exception import DoctorException
from app.db.models.time_slot import SLOT_AVAILABLE, SLOT_BLOCKED, SLOT_BOOKED
from app.services.booking import book_appointment, book_time_slot, release_time_slot
from app.services.doctor_exceptions import (
    check_doctor_availability_on_date,
    create_doctor_exception,
    delete_doctor_exception,
    get_doctor_exception_stats,
    get_doctor_exceptions,
    get_exceptions_by_type,
    get_recurring_exceptions,
    project_recurring_instances,
    update_doctor_exception,
)

from conftest import MONDAY


async def count(db, doctor_id, slot_type):
    return len(await list_slots(db, doctor_id=doctor_id, start=MONDAY, end=MONDAY, slot_type=slot_type))


def recurring(anchor, frequency, interval=1, end_date=None):
    return DoctorException(
        id=7,
        doctor_id=1,
        date=anchor,
        exception_type="personal",
        reason="Standing commitment",
        is_recurring=True,
        recurring_pattern={"frequency": frequency, "interval": interval, "end_date": end_date},
    )


class TestCreateAndDelete:
    """Blocking on create, exact restore on delete"""

    @pytest.mark.asyncio
    async def test_full_day_round_trip(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        created = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="vacation", reason="Holiday"
        )
        assert created["affected_slots_count"] == 16
        assert created["affected_appointments"] == []
        assert await count(db, doctor_id, SLOT_BLOCKED) == 16

        deleted = await delete_doctor_exception(db, created["exception_id"])
        assert deleted["deleted_exception_id"] == created["exception_id"]
        assert deleted["restored_slots_count"] == 16
        assert deleted["rebooked_slots_count"] == 0
        assert await count(db, doctor_id, SLOT_AVAILABLE) == 16
        assert await get_doctor_exceptions(db, doctor_id) == []

    @pytest.mark.asyncio
    async def test_restore_skips_slots_rebooked_meanwhile(self, db, clinic, monday_slots):
        """A slot released and booked again while blocked is not handed back to the pool"""
        doctor_id, relation_id = clinic.doctor.id, clinic.relation.id
        created = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="sick"
        )

        # an admin frees one slot and books it for someone else
        await release_time_slot(db, monday_slots[5])
        appt = await create_appointment(db, doctor_patient_id=relation_id,
                                        appointment_date_time=datetime(2025, 3, 3, 11, 30))
        await db.commit()
        await book_time_slot(db, monday_slots[5], appt.id)

        deleted = await delete_doctor_exception(db, created["exception_id"])
        assert deleted["restored_slots_count"] == 15

        slot = await get_slot(db, monday_slots[5], fresh=True)
        assert slot.slot_type == SLOT_BOOKED
        assert slot.appointment_id == appt.id

    @pytest.mark.asyncio
    async def test_override_then_delete_rebooks(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        appt = await book_appointment(db, slot_id=monday_slots[2], doctor_patient_id=clinic.relation.id)

        created = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="emergency",
            policy=BlockPolicy.OVERRIDE,
        )
        assert created["affected_slots_count"] == 16
        assert created["affected_appointments"] == [appt.id]

        slot = await get_slot(db, monday_slots[2], fresh=True)
        assert slot.slot_type == SLOT_BLOCKED
        assert slot.appointment_id == appt.id

        deleted = await delete_doctor_exception(db, created["exception_id"])
        assert deleted["restored_slots_count"] == 15
        assert deleted["rebooked_slots_count"] == 1

        slot = await get_slot(db, monday_slots[2], fresh=True)
        assert slot.slot_type == SLOT_BOOKED
        assert slot.appointment_id == appt.id

    @pytest.mark.asyncio
    async def test_delete_keeps_slots_of_overlapping_exception(self, db, clinic, monday_slots):
        """Removing the short exception leaves the whole-day one in force"""
        doctor_id = clinic.doctor.id
        vacation = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="vacation"
        )
        personal = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="personal",
            start_time="10:00", end_time="11:00",
        )

        deleted = await delete_doctor_exception(db, personal["exception_id"])
        assert deleted["restored_slots_count"] == 0
        assert await count(db, doctor_id, SLOT_BLOCKED) == 16
        slot = await get_slot(db, monday_slots[2], fresh=True)
        assert slot.slot_type == SLOT_BLOCKED

        check = await check_doctor_availability_on_date(db, doctor_id, MONDAY)
        assert check["is_available"] is False

        deleted = await delete_doctor_exception(db, vacation["exception_id"])
        assert deleted["restored_slots_count"] == 16
        assert await count(db, doctor_id, SLOT_AVAILABLE) == 16

    @pytest.mark.asyncio
    async def test_delete_whole_day_keeps_window_exception(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        vacation = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="vacation"
        )
        await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="personal",
            start_time="10:00", end_time="11:00",
        )

        deleted = await delete_doctor_exception(db, vacation["exception_id"])
        assert deleted["restored_slots_count"] == 14
        blocked = await list_slots(db, doctor_id=doctor_id, start=MONDAY, end=MONDAY,
                                   slot_type=SLOT_BLOCKED)
        assert [s.id for s in blocked] == monday_slots[2:4]

    @pytest.mark.asyncio
    async def test_refuse_policy(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        await book_appointment(db, slot_id=monday_slots[0], doctor_patient_id=clinic.relation.id)

        with pytest.raises(ConflictError):
            await create_doctor_exception(
                db, doctor_id=doctor_id, date=MONDAY, exception_type="conference",
                policy=BlockPolicy.REFUSE,
            )
        assert await get_doctor_exceptions(db, doctor_id) == []
        assert await count(db, doctor_id, SLOT_BLOCKED) == 0

    @pytest.mark.asyncio
    async def test_partial_window(self, db, clinic, monday_slots):
        doctor_id = clinic.doctor.id
        created = await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="training",
            start_time="13:00", end_time="15:00",
        )
        assert created["affected_slots_count"] == 4

        blocked = await list_slots(db, doctor_id=doctor_id, slot_type=SLOT_BLOCKED)
        assert [s.time for s in blocked] == [time(13, 0), time(13, 30), time(14, 0), time(14, 30)]

    @pytest.mark.asyncio
    async def test_no_slots_yet(self, db, clinic):
        created = await create_doctor_exception(
            db, doctor_id=clinic.doctor.id, date="2025-06-02", exception_type="vacation"
        )
        assert created["affected_slots_count"] == 0

    @pytest.mark.asyncio
    async def test_invalid_input(self, db, clinic):
        doctor_id = clinic.doctor.id
        with pytest.raises(ValidationError):
            await create_doctor_exception(db, doctor_id=doctor_id, date=MONDAY, exception_type="gardening")
        with pytest.raises(ValidationError):
            await create_doctor_exception(db, doctor_id=doctor_id, date=MONDAY, exception_type="sick",
                                          start_time="10:00")
        with pytest.raises(ValidationError):
            await create_doctor_exception(db, doctor_id=doctor_id, date=MONDAY, exception_type="sick",
                                          is_recurring=True, recurring_pattern={"frequency": "daily",
                                                                                "interval": 1})
        with pytest.raises(NotFoundError):
            await create_doctor_exception(db, doctor_id=9999, date=MONDAY, exception_type="sick")

    @pytest.mark.asyncio
    async def test_delete_unknown(self, db):
        with pytest.raises(NotFoundError):
            await delete_doctor_exception(db, 12345)

    @pytest.mark.asyncio
    async def test_update_reason(self, db, clinic):
        created = await create_doctor_exception(
            db, doctor_id=clinic.doctor.id, date=MONDAY, exception_type="personal", reason="Errand"
        )
        updated = await update_doctor_exception(db, created["exception_id"], reason="School play")
        assert updated.reason == "School play"


class TestQueries:
    """Listing, stats and date checks"""

    @pytest.mark.asyncio
    async def test_availability_on_date(self, db, clinic):
        doctor_id = clinic.doctor.id
        await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="training",
            start_time="13:00", end_time="15:00",
        )

        assert (await check_doctor_availability_on_date(db, doctor_id, "2025-03-04"))["is_available"]

        whole_day = await check_doctor_availability_on_date(db, doctor_id, MONDAY)
        assert whole_day["is_available"] is False
        assert len(whole_day["exceptions"]) == 1

        assert (await check_doctor_availability_on_date(db, doctor_id, MONDAY, "10:00"))["is_available"]
        assert not (await check_doctor_availability_on_date(db, doctor_id, MONDAY, "13:00"))["is_available"]
        # the end of the window is exclusive
        assert (await check_doctor_availability_on_date(db, doctor_id, MONDAY, "15:00"))["is_available"]

    @pytest.mark.asyncio
    async def test_stats_and_by_type(self, db, clinic):
        doctor_id = clinic.doctor.id
        for day, kind in [("2025-03-03", "vacation"), ("2025-03-04", "vacation"), ("2025-03-10", "sick")]:
            await create_doctor_exception(db, doctor_id=doctor_id, date=day, exception_type=kind)
        await create_doctor_exception(
            db, doctor_id=doctor_id, date="2025-03-05", exception_type="personal",
            is_recurring=True, recurring_pattern={"frequency": "weekly", "interval": 1},
        )

        stats = await get_doctor_exception_stats(db, doctor_id, "2025-03-01", "2025-03-31")
        assert stats["total"] == 4
        assert stats["vacation"] == 2
        assert stats["sick"] == 1
        assert stats["conference"] == 0
        assert stats["recurring"] == 1

        vacations = await get_exceptions_by_type(db, doctor_id, "vacation")
        assert [e.date for e in vacations] == [date(2025, 3, 3), date(2025, 3, 4)]

        march_first_week = await get_doctor_exceptions(db, doctor_id, "2025-03-01", "2025-03-07")
        assert len(march_first_week) == 3


class TestRecurringProjection:
    """Virtual instances of recurring exceptions"""

    def test_weekly(self):
        instances = project_recurring_instances(recurring(date(2025, 3, 3), "weekly"), date(2025, 3, 24))
        assert [i["date"] for i in instances] == [date(2025, 3, 10), date(2025, 3, 17), date(2025, 3, 24)]
        assert all(i["is_generated_instance"] for i in instances)
        assert all(i["original_exception_id"] == 7 for i in instances)

    def test_weekly_interval_and_end_date(self):
        exception = recurring(date(2025, 3, 3), "weekly", interval=2, end_date="2025-04-10")
        instances = project_recurring_instances(exception, date(2025, 12, 31))
        assert [i["date"] for i in instances] == [date(2025, 3, 17), date(2025, 3, 31)]

    def test_monthly_clamps_to_month_end(self):
        exception = recurring(date(2025, 1, 31), "monthly")
        instances = project_recurring_instances(exception, date(2025, 4, 15))
        assert [i["date"] for i in instances] == [date(2025, 2, 28), date(2025, 3, 31)]

    def test_not_recurring(self):
        exception = recurring(date(2025, 3, 3), "weekly")
        exception.is_recurring = False
        assert project_recurring_instances(exception, date(2025, 12, 31)) == []

    @pytest.mark.asyncio
    async def test_get_recurring_exceptions(self, db, clinic):
        doctor_id = clinic.doctor.id
        await create_doctor_exception(
            db, doctor_id=doctor_id, date=MONDAY, exception_type="personal",
            start_time="16:00", end_time="17:00",
            is_recurring=True, recurring_pattern={"frequency": "weekly", "interval": 1},
        )
        await create_doctor_exception(db, doctor_id=doctor_id, date=MONDAY, exception_type="sick",
                                      start_time="09:00", end_time="10:00")

        result = await get_recurring_exceptions(db, doctor_id, 14, today_=MONDAY)
        assert len(result["recurring_exceptions"]) == 1
        dates = [i["date"] for i in result["future_instances"]]
        assert dates == [date(2025, 3, 10), date(2025, 3, 17)]
        assert result["future_instances"][0]["start_time"] == time(16, 0)
