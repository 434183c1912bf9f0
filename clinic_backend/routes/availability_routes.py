from datetime import date, time

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import get_current_user
from clinic_backend.core.errors import ClinicError
from clinic_backend.models.user import User
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db, http_error
from clinic_backend.services.slot_resolver import DoctorSlots, Slot, resolve_slot, resolve_slots

router = APIRouter(tags=['availability'])


class SlotResponse(BaseModel):
    schedule_id: int
    date: date
    time: str
    start_time: time
    end_time: time
    room_id: int
    max_capacity: int
    booked_count: int
    available: bool

    @classmethod
    def from_slot(cls, slot: Slot) -> 'SlotResponse':
        return cls(
            schedule_id=slot.schedule_id,
            date=slot.date,
            time=slot.time_label,
            start_time=slot.start_time,
            end_time=slot.end_time,
            room_id=slot.room_id,
            max_capacity=slot.max_capacity,
            booked_count=slot.booked_count,
            available=slot.available,
        )


class DoctorSlotsResponse(BaseModel):
    doctor_id: int
    full_name: str
    specialty: str
    fees: dict[str, float]
    slots: list[SlotResponse]

    @classmethod
    def from_doctor_slots(cls, entry: DoctorSlots) -> 'DoctorSlotsResponse':
        return cls(
            doctor_id=entry.doctor_id,
            full_name=entry.full_name,
            specialty=entry.specialty,
            fees=entry.fees,
            slots=[SlotResponse.from_slot(slot) for slot in entry.slots],
        )


@router.get('/slots', response_model=list[DoctorSlotsResponse])
def list_available_doctors(
    specialty_id: int = Query(..., ge=1),
    date: date = Query(...),
    available_only: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctors = resolve_slots(db, specialty_id, date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    response = [DoctorSlotsResponse.from_doctor_slots(entry) for entry in doctors]
    if available_only:
        for entry in response:
            entry.slots = [slot for slot in entry.slots if slot.available]
        response = [entry for entry in response if entry.slots]
    return response


@router.get('/slots/{schedule_id}', response_model=SlotResponse)
def get_slot(
    schedule_id: int,
    date: date = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return SlotResponse.from_slot(resolve_slot(db, schedule_id, date))
    except ClinicError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
