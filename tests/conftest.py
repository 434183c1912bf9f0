import os
from datetime import date, time, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_backend.core.constants import UserRole, Weekday  # noqa: E402
from clinic_backend.database import Base, create_database_engine  # noqa: E402
from clinic_backend.models.appointment import Appointment  # noqa: E402,F401
from clinic_backend.models.doctor import Doctor  # noqa: E402
from clinic_backend.models.room import Room  # noqa: E402
from clinic_backend.models.schedule_template import ScheduleTemplate  # noqa: E402
from clinic_backend.models.specialty import Specialty  # noqa: E402
from clinic_backend.models.user import User  # noqa: E402


def next_weekday(weekday: Weekday, after: date | None = None) -> date:
    """First date strictly after ``after`` (default today) that falls on ``weekday``."""
    after = after or date.today()
    days_ahead = (int(weekday) - after.weekday()) % 7 or 7
    return after + timedelta(days=days_ahead)


def seed_directory(db) -> SimpleNamespace:
    db.add_all([
        Specialty(id=1, name='Cardiology'),
        Specialty(id=2, name='Dermatology'),
        Room(id=1, name='Room 101'),
        Room(id=2, name='Room 102'),
        User(id=1, email='patient1@example.com', full_name='Patient One', role=UserRole.PATIENT.value),
        User(id=2, email='patient2@example.com', full_name='Patient Two', role=UserRole.PATIENT.value),
        User(id=3, email='patient3@example.com', full_name='Patient Three', role=UserRole.PATIENT.value),
        User(id=10, email='reception@example.com', full_name='Front Desk', role=UserRole.RECEPTIONIST.value),
        User(id=11, email='admin@example.com', full_name='Clinic Admin', role=UserRole.ADMIN.value),
        User(id=20, email='house@example.com', full_name='Gregory House', role=UserRole.DOCTOR.value),
        User(id=21, email='wilson@example.com', full_name='James Wilson', role=UserRole.DOCTOR.value),
    ])
    db.flush()
    db.add_all([
        Doctor(id=7, user_id=20, full_name='Gregory House', specialty_id=1, examination_fee=150, consultation_fee=80),
        Doctor(id=8, user_id=21, full_name='James Wilson', specialty_id=1, examination_fee=120, consultation_fee=60),
        Doctor(id=9, full_name='Lisa Cuddy', specialty_id=2, examination_fee=100, consultation_fee=50),
    ])
    db.commit()

    return SimpleNamespace(
        cardiology_id=1,
        dermatology_id=2,
        room_id=1,
        other_room_id=2,
        patient_ids=(1, 2, 3),
        receptionist_id=10,
        admin_id=11,
        doctor_id=7,
        doctor_user_id=20,
        other_doctor_id=8,
        other_doctor_user_id=21,
        dermatologist_id=9,
    )


def add_template(
    db,
    doctor_id: int = 7,
    weekday: Weekday = Weekday.MON,
    start: time = time(9, 0),
    end: time = time(9, 30),
    max_capacity: int = 2,
    room_id: int = 1,
) -> ScheduleTemplate:
    template = ScheduleTemplate(
        doctor_id=doctor_id,
        weekday=int(weekday),
        room_id=room_id,
        start_time=start,
        end_time=end,
        max_capacity=max_capacity,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.fixture
def db():
    engine = create_database_engine('sqlite://')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clinic(db) -> SimpleNamespace:
    return seed_directory(db)


@pytest.fixture
def monday_template(db, clinic) -> ScheduleTemplate:
    return add_template(db)


@pytest.fixture
def next_monday() -> date:
    return next_weekday(Weekday.MON)
