from datetime import date

from sqlalchemy.orm import Session

from clinic_backend.core.constants import AppointmentStatus
from clinic_backend.core.errors import NotFound
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.schedule_template import ScheduleTemplate


def _with_slot_times(db: Session):
    return db.query(Appointment).join(ScheduleTemplate, ScheduleTemplate.id == Appointment.schedule_id)


def upcoming_for_patient(db: Session, patient_id: int, today: date | None = None) -> list[Appointment]:
    today = today or date.today()
    return _with_slot_times(db).filter(
        Appointment.patient_id == patient_id,
        Appointment.appointment_date >= today,
        Appointment.status != AppointmentStatus.CANCELED.value,
    ).order_by(Appointment.appointment_date.asc(), ScheduleTemplate.start_time.asc()).all()


def past_for_patient(db: Session, patient_id: int, today: date | None = None) -> list[Appointment]:
    today = today or date.today()
    return _with_slot_times(db).filter(
        Appointment.patient_id == patient_id,
        Appointment.appointment_date < today,
    ).order_by(Appointment.appointment_date.desc(), ScheduleTemplate.start_time.desc()).all()


def for_doctor_on_date(db: Session, doctor_id: int, on_date: date) -> list[Appointment]:
    return _with_slot_times(db).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == on_date,
        Appointment.status != AppointmentStatus.CANCELED.value,
    ).order_by(ScheduleTemplate.start_time.asc(), Appointment.booking_timestamp.asc()).all()


def for_date(db: Session, on_date: date, doctor_id: int | None = None) -> list[Appointment]:
    """Reception's daily list: every live appointment on ``on_date``."""
    query = _with_slot_times(db).filter(
        Appointment.appointment_date == on_date,
        Appointment.status != AppointmentStatus.CANCELED.value,
    )
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    return query.order_by(
        ScheduleTemplate.start_time.asc(),
        Appointment.doctor_id.asc(),
        Appointment.booking_timestamp.asc(),
    ).all()


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment')
    return appointment


def follow_ups_for(db: Session, parent_appointment_id: int) -> list[Appointment]:
    """Direct follow-ups of one appointment, canceled ones included, in visit order."""
    return _with_slot_times(db).filter(
        Appointment.parent_appointment_id == parent_appointment_id,
    ).order_by(Appointment.appointment_date.asc(), ScheduleTemplate.start_time.asc()).all()
