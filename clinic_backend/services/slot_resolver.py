"""Expand weekly schedule templates into dated slots with live booking counts.

Slots are never stored or cached: every call counts the non-canceled
appointments currently committed for each (schedule, date) pair.
"""

from dataclasses import dataclass, field
from datetime import date, time

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_backend.core.constants import AppointmentStatus, Weekday
from clinic_backend.core.errors import DateMismatch, ScheduleNotFound
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.schedule_template import ScheduleTemplate
from clinic_backend.services import directory


@dataclass(frozen=True)
class Slot:
    schedule_id: int
    date: date
    start_time: time
    end_time: time
    room_id: int
    max_capacity: int
    booked_count: int

    @property
    def available(self) -> bool:
        return self.booked_count < self.max_capacity

    @property
    def remaining(self) -> int:
        return max(self.max_capacity - self.booked_count, 0)

    @property
    def time_label(self) -> str:
        return f'{self.start_time:%H:%M}-{self.end_time:%H:%M}'


@dataclass
class DoctorSlots:
    doctor_id: int
    full_name: str
    specialty: str
    fees: dict[str, float]
    slots: list[Slot] = field(default_factory=list)


def count_booked(db: Session, schedule_id: int, on_date: date) -> int:
    return db.query(func.count(Appointment.id)).filter(
        Appointment.schedule_id == schedule_id,
        Appointment.appointment_date == on_date,
        Appointment.status != AppointmentStatus.CANCELED.value,
    ).scalar()


def booked_counts(db: Session, schedule_ids: list[int], on_date: date) -> dict[int, int]:
    if not schedule_ids:
        return {}

    rows = db.query(Appointment.schedule_id, func.count(Appointment.id)).filter(
        Appointment.schedule_id.in_(schedule_ids),
        Appointment.appointment_date == on_date,
        Appointment.status != AppointmentStatus.CANCELED.value,
    ).group_by(Appointment.schedule_id).all()

    return {schedule_id: booked for schedule_id, booked in rows}


def build_slot(template: ScheduleTemplate, on_date: date, booked_count: int) -> Slot:
    return Slot(
        schedule_id=template.id,
        date=on_date,
        start_time=template.start_time,
        end_time=template.end_time,
        room_id=template.room_id,
        max_capacity=template.max_capacity,
        booked_count=booked_count,
    )


def resolve_slots(db: Session, specialty_id: int, on_date: date) -> list[DoctorSlots]:
    weekday = Weekday.from_date(on_date)

    rows = db.query(ScheduleTemplate, Doctor).join(
        Doctor, Doctor.id == ScheduleTemplate.doctor_id,
    ).filter(
        Doctor.specialty_id == specialty_id,
        ScheduleTemplate.weekday == int(weekday),
    ).order_by(
        Doctor.full_name.asc(),
        Doctor.id.asc(),
        ScheduleTemplate.start_time.asc(),
    ).all()

    if not rows:
        return []

    counts = booked_counts(db, [template.id for template, _ in rows], on_date)
    specialty = directory.specialty_names(db, {specialty_id}).get(specialty_id, '')

    grouped: dict[int, DoctorSlots] = {}
    for template, doctor in rows:
        entry = grouped.get(doctor.id)
        if entry is None:
            entry = DoctorSlots(
                doctor_id=doctor.id,
                full_name=doctor.full_name,
                specialty=specialty,
                fees=directory.fees_by_type(doctor),
            )
            grouped[doctor.id] = entry
        entry.slots.append(build_slot(template, on_date, counts.get(template.id, 0)))

    return list(grouped.values())


def resolve_slot(db: Session, schedule_id: int, on_date: date) -> Slot:
    template = db.get(ScheduleTemplate, schedule_id)
    if template is None:
        raise ScheduleNotFound()
    if Weekday.from_date(on_date) != Weekday(template.weekday):
        raise DateMismatch()

    return build_slot(template, on_date, count_booked(db, schedule_id, on_date))
