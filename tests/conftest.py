#!/usr/bin/env python3
"""
Shared fixtures for the scheduling test suite.

Every test gets its own file-backed SQLite database so that two sessions
really are two connections; the concurrent booking tests rely on that.
"""

import os
import sys
import tempfile
import time
from datetime import date
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Settings are read at import time, so the test environment goes in first
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'clinic_scheduling_default.db')}",
)
os.environ.setdefault("API_KEY", "")

from app.db.base import init_db  # noqa: E402
from app.db.models.doctor import Doctor, DoctorPatient, Patient  # noqa: E402
from app.db.models.user import User  # noqa: E402
from app.db.session import build_engine, build_sessionmaker  # noqa: E402
from app.services.notifications import NotificationSink, set_notification_sink  # noqa: E402

# 2025-03-03 is a Monday (day_of_week 1)
MONDAY = date(2025, 3, 3)

WORKDAY = {
    "start_time": "09:00",
    "end_time": "17:00",
    "slot_duration": 30,
    "buffer_time": 0,
    "break_times": [],
}


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh schema in a per-test SQLite file."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduling.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class RecordingNotificationSink(NotificationSink):
    """Keeps notifications in memory so tests can assert on them."""

    def __init__(self):
        self.sent = []

    async def notify(self, **payload):
        self.sent.append(payload)


@pytest.fixture(autouse=True)
def notifier():
    """Capture notifications in memory instead of writing rows."""
    sink = RecordingNotificationSink()
    set_notification_sink(sink)
    yield sink
    set_notification_sink(None)


async def _add_doctor(db, email: str, first: str, last: str) -> Doctor:
    user = User(full_name=f"{first} {last}", email=email, role="doctor")
    db.add(user)
    await db.flush()
    doctor = Doctor(user_id=user.id, first_name=first, last_name=last, is_active=True, is_verified=True)
    db.add(doctor)
    await db.flush()
    return doctor


@pytest_asyncio.fixture
async def clinic(db):
    """One doctor, one patient, their care relationship, and an admin user."""
    doctor = await _add_doctor(db, "house@clinic.test", "Gregory", "House")

    patient_user = User(full_name="Jane Roe", email="jane@patients.test", role="patient")
    admin = User(full_name="Front Desk", email="desk@clinic.test", role="admin")
    db.add_all([patient_user, admin])
    await db.flush()

    patient = Patient(user_id=patient_user.id, first_name="Jane", last_name="Roe")
    db.add(patient)
    await db.flush()

    relation = DoctorPatient(doctor_id=doctor.id, patient_id=patient.id)
    db.add(relation)
    await db.commit()

    return SimpleNamespace(
        doctor=doctor,
        patient=patient,
        patient_user=patient_user,
        relation=relation,
        admin=admin,
    )


@pytest_asyncio.fixture
async def other_doctor(db):
    doctor = await _add_doctor(db, "wilson@clinic.test", "James", "Wilson")
    await db.commit()
    return doctor


@pytest_asyncio.fixture
async def monday_slots(db, clinic):
    """Monday 09:00-17:00 template in 30 minute slots, generated for MONDAY."""
    from app.services.availability_templates import set_doctor_availability
    from app.services.slot_generator import generate_time_slots

    await set_doctor_availability(db, clinic.doctor.id, day_of_week=1, **WORKDAY)
    result = await generate_time_slots(db, clinic.doctor.id, MONDAY, MONDAY)
    return result.slot_ids


@pytest.fixture(autouse=True)
def monitor_test_performance(request):
    """Warn about slow tests"""
    start_time = time.time()
    yield
    duration = time.time() - start_time
    if not request.node.get_closest_marker("slow") and duration > 10.0:
        print(f"Test {request.node.name} took {duration:.2f}s (consider marking as @pytest.mark.slow)")


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "slow: Long-running tests (> 30 seconds each)")
    config.addinivalue_line("markers", "integration: Tests that go through the HTTP layer")
    config.addinivalue_line("markers", "unit: Pure unit tests with no database")


def pytest_collection_modifyitems(config, items):
    """Run pure unit tests first and slow tests last"""
    def test_priority(item):
        if item.get_closest_marker("unit"):
            return 0
        elif item.get_closest_marker("integration"):
            return 2
        elif item.get_closest_marker("slow"):
            return 3
        return 1

    items[:] = sorted(items, key=test_priority)
