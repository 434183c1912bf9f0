from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import get_current_user, require_staff
from clinic_backend.core.constants import AppointmentStatus, AppointmentType, UserRole
from clinic_backend.core.errors import ClinicError, Forbidden
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.user import User
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db, http_error
from clinic_backend.services import appointment_queries, booking
from clinic_backend.services.directory import doctor_for_user, is_staff

router = APIRouter(tags=['appointments'])

SLOT_FULL_DETAIL = 'Slot is full. Please select another time.'


def _normalize_appointment_type(value: str) -> str:
    normalized = value.strip().lower()
    for appointment_type in AppointmentType:
        if appointment_type.value.lower() == normalized:
            return appointment_type.value
    raise ValueError('Appointment type must be Examination or Consultation.')


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    schedule_id: int
    appointment_date: date
    appointment_type: str
    patient_id: int | None = None

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        return _normalize_appointment_type(value)


class CreateFollowUpRequest(BaseModel):
    schedule_id: int
    appointment_date: date
    appointment_type: str

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        return _normalize_appointment_type(value)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    schedule_id: int
    appointment_date: date
    appointment_type: str
    status: str
    fee_paid: float
    booking_timestamp: datetime
    parent_appointment_id: int | None = None
    status_changed_at: datetime | None = None

    class Config:
        from_attributes = True


def _booked_response(outcome: booking.BookingOutcome) -> AppointmentResponse:
    if outcome.slot_full:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SLOT_FULL_DETAIL)
    return AppointmentResponse.model_validate(outcome.appointment)


def _rollback_quietly(db: Session) -> None:
    if db.in_transaction():
        db.rollback()


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.role == UserRole.PATIENT.value:
        if data.patient_id not in (None, current_user.id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Patients can only book appointments for themselves.',
            )
        patient_id = current_user.id
    elif current_user.role in (UserRole.RECEPTIONIST.value, UserRole.ADMIN.value):
        if data.patient_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Patient ID is required when booking for a patient.',
            )
        patient_id = data.patient_id
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only patients and reception staff can book appointments.',
        )

    ensure_database_ready()

    try:
        outcome = booking.book(
            db,
            patient_id=patient_id,
            doctor_id=data.doctor_id,
            schedule_id=data.schedule_id,
            appointment_date=data.appointment_date,
            appointment_type=data.appointment_type,
            channel=booking.channel_for(current_user),
        )
    except ClinicError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        _rollback_quietly(db)
        raise database_unavailable() from exc

    return _booked_response(outcome)


@router.post(
    '/{appointment_id}/follow-ups',
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_follow_up(
    appointment_id: int,
    data: CreateFollowUpRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        outcome = booking.create_follow_up(
            db,
            parent_appointment_id=appointment_id,
            schedule_id=data.schedule_id,
            appointment_date=data.appointment_date,
            appointment_type=data.appointment_type,
            requester_id=current_user.id,
        )
    except ClinicError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        _rollback_quietly(db)
        raise database_unavailable() from exc

    return _booked_response(outcome)


def _change_status(db: Session, appointment_id: int, target: AppointmentStatus, current_user: User):
    ensure_database_ready()

    try:
        appointment = booking.change_status(db, appointment_id, target, requester_id=current_user.id)
    except ClinicError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        _rollback_quietly(db)
        raise database_unavailable() from exc

    return AppointmentResponse.model_validate(appointment)


@router.patch('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _change_status(db, appointment_id, AppointmentStatus.CANCELED, current_user)


@router.patch('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _change_status(db, appointment_id, AppointmentStatus.CONFIRMED, current_user)


@router.patch('/{appointment_id}/check-in', response_model=AppointmentResponse)
def check_in_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _change_status(db, appointment_id, AppointmentStatus.CHECKED_IN, current_user)


@router.patch('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _change_status(db, appointment_id, AppointmentStatus.COMPLETED, current_user)


def _require_patient(current_user: User, action: str) -> None:
    if current_user.role != UserRole.PATIENT.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Only patients can view their own {action} appointments.',
        )


def _list(query, *args) -> list[Appointment]:
    ensure_database_ready()
    try:
        return query(*args)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/mine/upcoming', response_model=list[AppointmentResponse])
def list_my_upcoming_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_patient(current_user, 'upcoming')
    return _list(appointment_queries.upcoming_for_patient, db, current_user.id)


@router.get('/mine/past', response_model=list[AppointmentResponse])
def list_my_past_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_patient(current_user, 'past')
    return _list(appointment_queries.past_for_patient, db, current_user.id)


@router.get('/doctor/{doctor_id}', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    doctor_id: int,
    date: date = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not is_staff(current_user):
        own_profile = doctor_for_user(db, current_user.id) if current_user.role == UserRole.DOCTOR.value else None
        if own_profile is None or own_profile.id != doctor_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Doctors can only view their own appointments.',
            )
    return _list(appointment_queries.for_doctor_on_date, db, doctor_id, date)


@router.get('/day', response_model=list[AppointmentResponse])
def list_day_appointments(
    date: date = Query(...),
    doctor_id: int | None = Query(default=None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return _list(appointment_queries.for_date, db, date, doctor_id)


def _visible_appointment(db: Session, appointment_id: int, current_user: User) -> Appointment:
    appointment = appointment_queries.get_appointment(db, appointment_id)
    if not booking.may_access(db, appointment, current_user):
        raise Forbidden('You are not allowed to view this appointment.')
    return appointment


# Declared last so the static paths above win over the id pattern.
@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    try:
        return _visible_appointment(db, appointment_id, current_user)
    except ClinicError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{appointment_id}/follow-ups', response_model=list[AppointmentResponse])
def list_follow_ups(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    try:
        parent = _visible_appointment(db, appointment_id, current_user)
        return appointment_queries.follow_ups_for(db, parent.id)
    except ClinicError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
