import os
from datetime import date, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medschedule.core.time_utils import today_utc, utc_day_of_week
from medschedule.database import Base, get_db
from medschedule.main import app
from medschedule.models.appointment import Appointment, AppointmentStatus
from medschedule.models.user import User
from medschedule.models.working_hours import WorkingHours
from medschedule.services.working_hours_service import generate_schedules


@pytest.fixture
def engine():
    """Fresh in-memory database per test, shared by every session of that test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_doctor(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "email": f"doctor{counter['n']}@example.com",
            "full_name": f"Doctor {counter['n']}",
            "is_doctor": True,
            "is_active": True,
            "is_available": True,
        }
        fields.update(overrides)
        doctor = User(**fields)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def patient(db):
    patient = User(email="patient@example.com", full_name="Patient", is_doctor=False)
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


@pytest.fixture
def make_rule(db):
    """Insert a working-hours row directly, bypassing request validation."""

    def _make(doctor, day_of_week, start_time, end_time, slot_duration=60, break_duration=0, is_active=True):
        rule = WorkingHours(
            doctor_id=doctor.id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            slot_duration=slot_duration,
            break_duration=break_duration,
            is_active=is_active,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _make


@pytest.fixture
def book_slot(db, patient):
    def _book(slot, status=AppointmentStatus.SCHEDULED):
        appointment = Appointment(
            doctor_id=slot.schedule.doctor_id,
            patient_id=patient.id,
            slot_id=slot.id,
            status=status,
        )
        slot.is_available = False
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _book


def upcoming(day_of_week: int, after: date = None) -> date:
    """First date strictly after ``after`` (default today UTC) falling on ``day_of_week``."""
    current = (after or today_utc()) + timedelta(days=1)
    while utc_day_of_week(current) != day_of_week:
        current += timedelta(days=1)
    return current


@pytest.fixture
def next_weekday():
    return upcoming


@pytest.fixture
def monday(next_weekday):
    return next_weekday(1)


@pytest.fixture
def generated(db, doctor, make_rule, monday):
    """Monday rule 09:00-12:00 with hourly slots, generated for the coming Monday."""
    make_rule(doctor, 1, "09:00", "12:00", slot_duration=60)
    result = generate_schedules(db, doctor.id, monday.isoformat(), (monday + timedelta(days=1)).isoformat())
    return result.generated[0]
