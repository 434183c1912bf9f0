import logging
from datetime import date, time

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.core.constants import AppointmentStatus, Weekday
from clinic_backend.core.errors import (
    CapacityBelowBookings,
    ClinicError,
    DuplicateTemplate,
    InvalidWindow,
    NotFound,
    RoomConflict,
    TemplateInUse,
)
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.schedule_template import ScheduleTemplate
from clinic_backend.services import directory

logger = logging.getLogger(__name__)


def validate_window(start_time: time, end_time: time, max_capacity: int) -> None:
    if start_time >= end_time:
        raise InvalidWindow('Start time must be before end time.')
    if max_capacity < 1:
        raise InvalidWindow('Capacity must be at least 1.')


def _find_duplicate(
    db: Session,
    doctor_id: int,
    weekday: Weekday,
    start_time: time,
    exclude_id: int | None = None,
) -> ScheduleTemplate | None:
    query = db.query(ScheduleTemplate).filter(
        ScheduleTemplate.doctor_id == doctor_id,
        ScheduleTemplate.weekday == int(weekday),
        ScheduleTemplate.start_time == start_time,
    )
    if exclude_id is not None:
        query = query.filter(ScheduleTemplate.id != exclude_id)
    return query.first()


def _find_room_conflict(
    db: Session,
    room_id: int,
    weekday: Weekday,
    start_time: time,
    end_time: time,
    exclude_id: int | None = None,
) -> ScheduleTemplate | None:
    query = db.query(ScheduleTemplate).filter(
        ScheduleTemplate.room_id == room_id,
        ScheduleTemplate.weekday == int(weekday),
        ScheduleTemplate.start_time < end_time,
        ScheduleTemplate.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(ScheduleTemplate.id != exclude_id)
    return query.first()


def _commit_template(db: Session, template: ScheduleTemplate) -> ScheduleTemplate:
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against an identical (doctor, weekday, start) insert.
        db.rollback()
        raise DuplicateTemplate() from exc
    db.refresh(template)
    return template


def create_template(
    db: Session,
    doctor_id: int,
    weekday: Weekday,
    room_id: int,
    start_time: time,
    end_time: time,
    max_capacity: int,
) -> ScheduleTemplate:
    weekday = Weekday(weekday)
    validate_window(start_time, end_time, max_capacity)
    directory.get_doctor(db, doctor_id)
    directory.get_room(db, room_id)

    if _find_duplicate(db, doctor_id, weekday, start_time):
        raise DuplicateTemplate()
    if _find_room_conflict(db, room_id, weekday, start_time, end_time):
        raise RoomConflict()

    template = ScheduleTemplate(
        doctor_id=doctor_id,
        weekday=int(weekday),
        room_id=room_id,
        start_time=start_time,
        end_time=end_time,
        max_capacity=max_capacity,
    )
    db.add(template)
    template = _commit_template(db, template)

    logger.info(
        'Created schedule %s for doctor %s on %s %s-%s (capacity %s)',
        template.id, doctor_id, weekday.label, start_time, end_time, max_capacity,
    )
    return template


def get_template(db: Session, template_id: int) -> ScheduleTemplate:
    template = db.get(ScheduleTemplate, template_id)
    if template is None:
        raise NotFound('Schedule')
    return template


def list_templates_for_doctor(db: Session, doctor_id: int) -> list[ScheduleTemplate]:
    return db.query(ScheduleTemplate).filter(
        ScheduleTemplate.doctor_id == doctor_id,
    ).order_by(ScheduleTemplate.weekday.asc(), ScheduleTemplate.start_time.asc()).all()


def list_templates(db: Session, weekday: Weekday | None = None) -> list[ScheduleTemplate]:
    query = db.query(ScheduleTemplate)
    if weekday is not None:
        query = query.filter(ScheduleTemplate.weekday == int(weekday))
    return query.order_by(
        ScheduleTemplate.weekday.asc(),
        ScheduleTemplate.start_time.asc(),
        ScheduleTemplate.doctor_id.asc(),
    ).all()


def highest_upcoming_booking_count(db: Session, template_id: int, today: date | None = None) -> int:
    today = today or date.today()
    per_date = db.query(func.count(Appointment.id).label('booked')).filter(
        Appointment.schedule_id == template_id,
        Appointment.appointment_date >= today,
        Appointment.status != AppointmentStatus.CANCELED.value,
    ).group_by(Appointment.appointment_date).subquery()

    return db.query(func.coalesce(func.max(per_date.c.booked), 0)).scalar()


def update_template(
    db: Session,
    template_id: int,
    room_id: int | None = None,
    start_time: time | None = None,
    end_time: time | None = None,
    max_capacity: int | None = None,
    today: date | None = None,
) -> ScheduleTemplate:
    template = db.query(ScheduleTemplate).filter(
        ScheduleTemplate.id == template_id,
    ).with_for_update().first()
    if template is None:
        db.rollback()
        raise NotFound('Schedule')

    try:
        _apply_template_changes(db, template, room_id, start_time, end_time, max_capacity, today)
    except ClinicError:
        db.rollback()
        raise
    template = _commit_template(db, template)

    logger.info('Updated schedule %s', template.id)
    return template


def _apply_template_changes(
    db: Session,
    template: ScheduleTemplate,
    room_id: int | None,
    start_time: time | None,
    end_time: time | None,
    max_capacity: int | None,
    today: date | None,
) -> None:
    weekday = Weekday(template.weekday)
    new_room_id = room_id if room_id is not None else template.room_id
    new_start = start_time if start_time is not None else template.start_time
    new_end = end_time if end_time is not None else template.end_time
    new_capacity = max_capacity if max_capacity is not None else template.max_capacity

    validate_window(new_start, new_end, new_capacity)
    if new_room_id != template.room_id:
        directory.get_room(db, new_room_id)

    if new_start != template.start_time and _find_duplicate(
        db, template.doctor_id, weekday, new_start, exclude_id=template.id
    ):
        raise DuplicateTemplate()
    if _find_room_conflict(db, new_room_id, weekday, new_start, new_end, exclude_id=template.id):
        raise RoomConflict()

    if new_capacity < template.max_capacity:
        booked = highest_upcoming_booking_count(db, template.id, today)
        if new_capacity < booked:
            raise CapacityBelowBookings(
                f'Capacity cannot be lowered to {new_capacity}; a slot already holds {booked} bookings.'
            )

    template.room_id = new_room_id
    template.start_time = new_start
    template.end_time = new_end
    template.max_capacity = new_capacity


def delete_template(db: Session, template_id: int) -> None:
    template = db.get(ScheduleTemplate, template_id)
    if template is None:
        raise NotFound('Schedule')

    referenced = db.query(Appointment.id).filter(Appointment.schedule_id == template_id).first()
    if referenced:
        raise TemplateInUse()

    db.delete(template)
    db.commit()
    logger.info('Deleted schedule %s', template_id)
