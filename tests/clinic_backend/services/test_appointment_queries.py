from datetime import date, datetime, time, timedelta

import pytest

from clinic_backend.core.constants import Weekday
from clinic_backend.core.errors import NotFound
from clinic_backend.models.appointment import Appointment
from clinic_backend.services import appointment_queries
from conftest import add_template


def _appointment(template, on_date: date, patient_id: int, status: str = 'Confirmed', booked_at: int = 0):
    return Appointment(
        patient_id=patient_id,
        schedule_id=template.id,
        doctor_id=template.doctor_id,
        appointment_date=on_date,
        appointment_type='Examination',
        status=status,
        fee_paid=150,
        booking_timestamp=datetime(2026, 1, 1, 8, booked_at),
    )


def test_patient_upcoming_and_past_lists(db, clinic) -> None:
    today = date(2026, 3, 4)
    morning = add_template(db, weekday=Weekday.MON, start=time(9, 0), end=time(9, 30))
    afternoon = add_template(db, weekday=Weekday.MON, start=time(14, 0), end=time(14, 30))
    upcoming_monday = date(2026, 3, 9)
    past_monday = date(2026, 3, 2)
    db.add_all([
        _appointment(afternoon, upcoming_monday, 1),
        _appointment(morning, upcoming_monday, 1),
        _appointment(morning, upcoming_monday + timedelta(days=7), 1, status='Canceled'),
        _appointment(morning, past_monday, 1, status='Completed'),
        _appointment(morning, past_monday - timedelta(days=7), 1, status='Canceled'),
        _appointment(morning, upcoming_monday, 2),
    ])
    db.commit()

    upcoming = appointment_queries.upcoming_for_patient(db, 1, today=today)
    past = appointment_queries.past_for_patient(db, 1, today=today)

    assert [(a.appointment_date, a.schedule_id) for a in upcoming] == [
        (upcoming_monday, morning.id),
        (upcoming_monday, afternoon.id),
    ]
    assert [a.appointment_date for a in past] == [past_monday, past_monday - timedelta(days=7)]


def test_doctor_and_reception_day_lists(db, clinic) -> None:
    monday = date(2026, 3, 9)
    house_late = add_template(db, doctor_id=7, start=time(11, 0), end=time(11, 30))
    house_early = add_template(db, doctor_id=7, start=time(8, 0), end=time(8, 30))
    wilson = add_template(db, doctor_id=8, start=time(9, 0), end=time(9, 30), room_id=2)
    db.add_all([
        _appointment(house_late, monday, 1, booked_at=1),
        _appointment(house_early, monday, 2, booked_at=2),
        _appointment(house_early, monday, 3, status='Canceled', booked_at=3),
        _appointment(wilson, monday, 3, booked_at=4),
    ])
    db.commit()

    house_day = appointment_queries.for_doctor_on_date(db, 7, monday)
    whole_day = appointment_queries.for_date(db, monday)
    wilson_day = appointment_queries.for_date(db, monday, doctor_id=8)

    assert [a.patient_id for a in house_day] == [2, 1]
    assert [a.patient_id for a in whole_day] == [2, 3, 1]
    assert [a.doctor_id for a in wilson_day] == [8]


def test_follow_ups_for_lists_direct_children_in_visit_order(db, clinic) -> None:
    morning = add_template(db, weekday=Weekday.TUE, start=time(9, 0), end=time(9, 30))
    afternoon = add_template(db, weekday=Weekday.TUE, start=time(14, 0), end=time(14, 30))
    parent = _appointment(morning, date(2026, 3, 3), patient_id=1)
    db.add(parent)
    db.commit()

    late = _appointment(afternoon, date(2026, 3, 17), patient_id=1)
    early = _appointment(morning, date(2026, 3, 17), patient_id=1, status='Canceled')
    first = _appointment(afternoon, date(2026, 3, 10), patient_id=1)
    for follow_up in (late, early, first):
        follow_up.parent_appointment_id = parent.id
    db.add_all([late, early, first])
    db.commit()

    grandchild = _appointment(morning, date(2026, 3, 24), patient_id=1)
    grandchild.parent_appointment_id = first.id
    db.add(grandchild)
    db.commit()

    follow_ups = appointment_queries.follow_ups_for(db, parent.id)

    assert [appointment.id for appointment in follow_ups] == [first.id, early.id, late.id]
    assert appointment_queries.follow_ups_for(db, grandchild.id) == []


def test_get_appointment_reports_missing_rows(db, clinic) -> None:
    template = add_template(db)
    appointment = _appointment(template, date(2026, 3, 2), patient_id=1)
    db.add(appointment)
    db.commit()

    assert appointment_queries.get_appointment(db, appointment.id).id == appointment.id
    with pytest.raises(NotFound):
        appointment_queries.get_appointment(db, 404)
