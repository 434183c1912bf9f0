from datetime import date, datetime, time, timedelta

import pytest

from clinic_backend.core.constants import Weekday
from clinic_backend.core.errors import DateMismatch, ScheduleNotFound
from clinic_backend.models.appointment import Appointment
from clinic_backend.services.slot_resolver import resolve_slot, resolve_slots
from conftest import add_template, next_weekday


def _appointment(template, on_date: date, patient_id: int, status: str = 'Confirmed') -> Appointment:
    return Appointment(
        patient_id=patient_id,
        schedule_id=template.id,
        doctor_id=template.doctor_id,
        appointment_date=on_date,
        appointment_type='Consultation',
        status=status,
        fee_paid=80,
        booking_timestamp=datetime(2026, 1, 1, 8, 0),
    )


def test_weekday_is_derived_from_the_civil_date() -> None:
    assert Weekday.from_date(date(2026, 1, 5)) is Weekday.MON
    assert Weekday.from_date(date(2026, 1, 11)) is Weekday.SUN
    assert Weekday.from_label('thu') is Weekday.THU
    assert Weekday.from_label('Wednesday') is Weekday.WED
    assert Weekday.SAT.label == 'Sat'


def test_resolve_slots_groups_by_doctor_with_live_counts(db, clinic) -> None:
    morning = add_template(db, doctor_id=7, start=time(9, 0), end=time(9, 30), max_capacity=2)
    afternoon = add_template(db, doctor_id=7, start=time(14, 0), end=time(14, 30), max_capacity=1, room_id=2)
    wilson = add_template(db, doctor_id=8, start=time(9, 0), end=time(10, 0), max_capacity=3, room_id=2)
    add_template(db, doctor_id=7, weekday=Weekday.TUE)
    add_template(db, doctor_id=9, start=time(11, 0), end=time(11, 30))

    monday = next_weekday(Weekday.MON)
    db.add_all([
        _appointment(morning, monday, 1),
        _appointment(morning, monday, 2, status='Canceled'),
        _appointment(afternoon, monday, 3, status='Pending'),
        _appointment(morning, monday + timedelta(days=7), 3),
    ])
    db.commit()

    doctors = resolve_slots(db, clinic.cardiology_id, monday)

    assert [entry.doctor_id for entry in doctors] == [7, 8]
    house, other = doctors
    assert house.full_name == 'Gregory House'
    assert house.specialty == 'Cardiology'
    assert house.fees == {'Examination': 150.0, 'Consultation': 80.0}
    assert [(slot.schedule_id, slot.booked_count, slot.available) for slot in house.slots] == [
        (morning.id, 1, True),
        (afternoon.id, 1, False),
    ]
    assert house.slots[0].time_label == '09:00-09:30'
    assert house.slots[0].remaining == 1
    assert [(slot.schedule_id, slot.booked_count) for slot in other.slots] == [(wilson.id, 0)]


def test_resolve_slots_keeps_fully_booked_doctors(db, clinic) -> None:
    template = add_template(db, max_capacity=1)
    monday = next_weekday(Weekday.MON)
    db.add(_appointment(template, monday, 1))
    db.commit()

    doctors = resolve_slots(db, clinic.cardiology_id, monday)

    assert len(doctors) == 1
    assert doctors[0].slots[0].available is False


def test_resolve_slots_returns_empty_list_when_no_template_matches(db, clinic) -> None:
    add_template(db, weekday=Weekday.MON)

    assert resolve_slots(db, clinic.cardiology_id, next_weekday(Weekday.WED)) == []
    assert resolve_slots(db, clinic.dermatology_id, next_weekday(Weekday.MON)) == []
    assert resolve_slots(db, 404, next_weekday(Weekday.MON)) == []


def test_resolve_slots_accepts_past_dates(db, clinic) -> None:
    add_template(db)

    doctors = resolve_slots(db, clinic.cardiology_id, date(2020, 1, 6))

    assert len(doctors) == 1
    assert doctors[0].slots[0].date == date(2020, 1, 6)


def test_resolve_slot_for_single_schedule(db, clinic) -> None:
    template = add_template(db, max_capacity=2)
    monday = next_weekday(Weekday.MON)
    db.add(_appointment(template, monday, 1))
    db.commit()

    slot = resolve_slot(db, template.id, monday)

    assert slot.booked_count == 1
    assert slot.available is True


def test_resolve_slot_rejects_unknown_schedule_and_wrong_weekday(db, clinic) -> None:
    template = add_template(db)

    with pytest.raises(ScheduleNotFound):
        resolve_slot(db, 404, next_weekday(Weekday.MON))
    with pytest.raises(DateMismatch):
        resolve_slot(db, template.id, next_weekday(Weekday.TUE))
