# app/db/base.py

"""
This file imports all the ORM models so Alembic and create_all can discover them.
Whenever you add a new model, import it here.
"""
from app.db.models.user import User
from app.db.models.doctor import Doctor, Patient, DoctorPatient
from app.db.models.appointment import Appointment
from app.db.models.availability import AvailabilityTemplate
from app.db.models.time_slot import TimeSlot
from app.db.models.doctor_exception import DoctorException
from app.db.models.reschedule_request import AppointmentRescheduleRequest
from app.db.models.notification import Notification
from app.db.session import engine, Base


async def init_db(bind=None):
    """Initialize database by creating all tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_engine():
    """Get database engine for connection testing"""
    return engine
