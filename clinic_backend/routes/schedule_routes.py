from datetime import time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_serializer, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import require_staff
from clinic_backend.core.constants import Weekday
from clinic_backend.core.errors import ClinicError
from clinic_backend.models.user import User
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db, http_error
from clinic_backend.services import schedule_store

router = APIRouter(tags=['schedules'])


class CreateScheduleRequest(BaseModel):
    doctor_id: int
    weekday: Weekday
    room_id: int
    start_time: time
    end_time: time
    max_capacity: int

    @field_validator('weekday', mode='before')
    @classmethod
    def parse_weekday(cls, value):
        if isinstance(value, str):
            return Weekday.from_label(value)
        return value


class UpdateScheduleRequest(BaseModel):
    room_id: int | None = None
    start_time: time | None = None
    end_time: time | None = None
    max_capacity: int | None = None


class ScheduleResponse(BaseModel):
    id: int
    doctor_id: int
    weekday: Weekday
    room_id: int
    start_time: time
    end_time: time
    max_capacity: int

    class Config:
        from_attributes = True

    @field_serializer('weekday')
    def serialize_weekday(self, weekday: Weekday) -> str:
        return weekday.label


def _run(db: Session, action, *args, **kwargs):
    ensure_database_ready()

    try:
        return action(db, *args, **kwargs)
    except ClinicError as exc:
        db.rollback()
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('', response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    data: CreateScheduleRequest,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return _run(
        db,
        schedule_store.create_template,
        doctor_id=data.doctor_id,
        weekday=data.weekday,
        room_id=data.room_id,
        start_time=data.start_time,
        end_time=data.end_time,
        max_capacity=data.max_capacity,
    )


@router.get('', response_model=list[ScheduleResponse])
def list_schedules(
    weekday: str | None = Query(default=None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        parsed_weekday = Weekday.from_label(weekday) if weekday else None
    except ValueError as exc:
        raise http_error(ClinicError(str(exc))) from exc

    return _run(db, schedule_store.list_templates, weekday=parsed_weekday)


@router.get('/doctor/{doctor_id}', response_model=list[ScheduleResponse])
def list_doctor_schedules(
    doctor_id: int,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return _run(db, schedule_store.list_templates_for_doctor, doctor_id)


@router.put('/{schedule_id}', response_model=ScheduleResponse)
def update_schedule(
    schedule_id: int,
    data: UpdateScheduleRequest,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return _run(
        db,
        schedule_store.update_template,
        schedule_id,
        room_id=data.room_id,
        start_time=data.start_time,
        end_time=data.end_time,
        max_capacity=data.max_capacity,
    )


@router.delete('/{schedule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    _run(db, schedule_store.delete_template, schedule_id)
