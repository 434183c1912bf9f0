"""Booking, follow-up, cancellation and status changes for appointments.

This module is the only writer of appointment rows. A booking reads the
slot's live count and inserts the new row inside one transaction that holds
the schedule template's row lock (``SELECT ... FOR UPDATE``; SQLite engines
take the database write lock at ``BEGIN IMMEDIATE`` instead), so competing
bookers of one slot are admitted strictly one at a time.

A full slot is an expected outcome under load and is returned as
``BookingOutcome(slot_full=True)`` rather than raised.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.core.constants import AppointmentStatus, AppointmentType, BookingChannel, UserRole, Weekday
from clinic_backend.core.errors import (
    ClinicError,
    DateInPast,
    DateMismatch,
    FollowUpBeforeParent,
    Forbidden,
    NotFound,
    ParentCanceled,
    ParentNotFound,
    PersistenceUnavailable,
    ScheduleNotFound,
)
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.schedule_template import ScheduleTemplate
from clinic_backend.models.user import User
from clinic_backend.services import directory, lifecycle
from clinic_backend.services.slot_resolver import Slot, build_slot, count_booked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingOutcome:
    appointment: Appointment | None
    slot: Slot
    slot_full: bool = False

    @property
    def succeeded(self) -> bool:
        return self.appointment is not None


def _lock_template(db: Session, schedule_id: int) -> ScheduleTemplate | None:
    return db.query(ScheduleTemplate).filter(
        ScheduleTemplate.id == schedule_id,
    ).with_for_update().first()


def _place_booking(
    db: Session,
    patient_id: int,
    doctor_id: int | None,
    schedule_id: int,
    appointment_date: date,
    appointment_type: AppointmentType,
    channel: BookingChannel,
    parent_appointment_id: int | None,
    today: date,
) -> BookingOutcome:
    directory.get_patient(db, patient_id)

    template = _lock_template(db, schedule_id)
    if template is None or (doctor_id is not None and template.doctor_id != doctor_id):
        raise ScheduleNotFound()

    if Weekday.from_date(appointment_date) != Weekday(template.weekday):
        raise DateMismatch(
            f'{appointment_date.isoformat()} is not a {Weekday(template.weekday).label}; '
            'pick a date on the schedule weekday.'
        )

    if appointment_date < today:
        raise DateInPast()

    booked = count_booked(db, template.id, appointment_date)
    if booked >= template.max_capacity:
        return BookingOutcome(
            appointment=None,
            slot=build_slot(template, appointment_date, booked),
            slot_full=True,
        )

    doctor = directory.get_doctor(db, template.doctor_id)
    appointment = Appointment(
        patient_id=patient_id,
        schedule_id=template.id,
        doctor_id=template.doctor_id,
        appointment_date=appointment_date,
        appointment_type=appointment_type.value,
        status=lifecycle.initial_status(channel).value,
        fee_paid=directory.fee_for(doctor, appointment_type),
        booking_timestamp=datetime.now(),
        parent_appointment_id=parent_appointment_id,
    )
    db.add(appointment)
    db.flush()

    return BookingOutcome(appointment=appointment, slot=build_slot(template, appointment_date, booked + 1))


def _run_booking_unit(db: Session, place: Callable[[], BookingOutcome]) -> BookingOutcome:
    attempt = 0
    while True:
        try:
            outcome = place()
            if outcome.succeeded:
                db.commit()
            else:
                db.rollback()
            break
        except ClinicError:
            db.rollback()
            raise
        except OperationalError as exc:
            db.rollback()
            if attempt >= config.BOOKING_COMMIT_RETRIES:
                logger.error('Booking failed after %s attempt(s): %s', attempt + 1, exc)
                raise PersistenceUnavailable() from exc
            attempt += 1
            logger.warning('Transient database error while booking, retrying (%s/%s)', attempt, config.BOOKING_COMMIT_RETRIES)

    if outcome.succeeded:
        db.refresh(outcome.appointment)
        logger.info(
            'Booked appointment %s for patient %s in schedule %s on %s (%s/%s)',
            outcome.appointment.id,
            outcome.appointment.patient_id,
            outcome.slot.schedule_id,
            outcome.slot.date,
            outcome.slot.booked_count,
            outcome.slot.max_capacity,
        )
    else:
        logger.info('Schedule %s is full on %s', outcome.slot.schedule_id, outcome.slot.date)

    return outcome


def book(
    db: Session,
    patient_id: int,
    doctor_id: int,
    schedule_id: int,
    appointment_date: date,
    appointment_type: AppointmentType | str,
    channel: BookingChannel = BookingChannel.SELF_SERVICE,
    today: date | None = None,
) -> BookingOutcome:
    appointment_type = AppointmentType(appointment_type)
    channel = BookingChannel(channel)
    today = today or date.today()

    return _run_booking_unit(
        db,
        lambda: _place_booking(
            db,
            patient_id=patient_id,
            doctor_id=doctor_id,
            schedule_id=schedule_id,
            appointment_date=appointment_date,
            appointment_type=appointment_type,
            channel=channel,
            parent_appointment_id=None,
            today=today,
        ),
    )


def channel_for(requester: User) -> BookingChannel:
    if requester.role == UserRole.PATIENT.value:
        return BookingChannel.SELF_SERVICE
    return BookingChannel.STAFF


def _is_assigned_doctor(db: Session, appointment: Appointment, requester: User) -> bool:
    if requester.role != UserRole.DOCTOR.value:
        return False
    doctor = directory.doctor_for_user(db, requester.id)
    return doctor is not None and doctor.id == appointment.doctor_id


def create_follow_up(
    db: Session,
    parent_appointment_id: int,
    schedule_id: int,
    appointment_date: date,
    appointment_type: AppointmentType | str,
    requester_id: int,
    today: date | None = None,
) -> BookingOutcome:
    appointment_type = AppointmentType(appointment_type)
    today = today or date.today()

    requester = directory.get_user(db, requester_id)
    if requester is None:
        raise Forbidden('Unknown requester.')

    parent = db.get(Appointment, parent_appointment_id)
    if parent is None:
        raise ParentNotFound()
    if requester.role == UserRole.PATIENT.value and parent.patient_id != requester.id:
        raise ParentNotFound()
    if requester.role == UserRole.DOCTOR.value and not _is_assigned_doctor(db, parent, requester):
        raise Forbidden('Only the doctor who saw this patient can schedule a follow-up.')
    if parent.status == AppointmentStatus.CANCELED.value:
        raise ParentCanceled()
    if appointment_date <= parent.appointment_date:
        raise FollowUpBeforeParent()

    patient_id = parent.patient_id
    channel = channel_for(requester)

    return _run_booking_unit(
        db,
        lambda: _place_booking(
            db,
            patient_id=patient_id,
            doctor_id=None,
            schedule_id=schedule_id,
            appointment_date=appointment_date,
            appointment_type=appointment_type,
            channel=channel,
            parent_appointment_id=parent_appointment_id,
            today=today,
        ),
    )


def _lock_appointment(db: Session, appointment_id: int) -> Appointment | None:
    return db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()


def may_access(db: Session, appointment: Appointment, requester: User | None) -> bool:
    """Owner patient, clinic staff or the assigned doctor."""
    if requester is None:
        return False
    if requester.role == UserRole.PATIENT.value:
        return appointment.patient_id == requester.id
    return directory.is_staff(requester) or _is_assigned_doctor(db, appointment, requester)


def _may_change_status(
    db: Session,
    appointment: Appointment,
    requester: User | None,
    target: AppointmentStatus,
) -> bool:
    if directory.is_staff(requester):
        return True
    return target is AppointmentStatus.COMPLETED and requester is not None and _is_assigned_doctor(
        db, appointment, requester
    )


def _commit_status_change(
    db: Session,
    appointment_id: int,
    target: AppointmentStatus,
    authorize: Callable[[Appointment, User | None], bool],
    now: datetime | None,
    requester_id: int,
) -> Appointment:
    try:
        appointment = _lock_appointment(db, appointment_id)
        if appointment is None:
            raise NotFound('Appointment')

        requester = directory.get_user(db, requester_id)
        if not authorize(appointment, requester):
            raise Forbidden()

        previous = appointment.status
        lifecycle.apply_transition(appointment, target, now)
        db.commit()
    except ClinicError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info('Appointment %s moved from %s to %s by user %s', appointment.id, previous, target.value, requester_id)
    return appointment


def cancel(db: Session, appointment_id: int, requester_id: int, now: datetime | None = None) -> Appointment:
    return _commit_status_change(
        db,
        appointment_id,
        AppointmentStatus.CANCELED,
        lambda appointment, requester: may_access(db, appointment, requester),
        now,
        requester_id,
    )


def change_status(
    db: Session,
    appointment_id: int,
    target: AppointmentStatus | str,
    requester_id: int,
    now: datetime | None = None,
) -> Appointment:
    target = AppointmentStatus(target)
    if target is AppointmentStatus.CANCELED:
        return cancel(db, appointment_id, requester_id, now)

    return _commit_status_change(
        db,
        appointment_id,
        target,
        lambda appointment, requester: _may_change_status(db, appointment, requester, target),
        now,
        requester_id,
    )
