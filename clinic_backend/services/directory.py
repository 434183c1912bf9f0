"""Read-only lookups against the identity and directory tables.

Doctors, patients, rooms and specialties are maintained by other tooling;
the booking engine only reads them by id.
"""

from sqlalchemy.orm import Session

from clinic_backend.core.constants import STAFF_ROLES, AppointmentType, UserRole
from clinic_backend.core.errors import NotFound
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.room import Room
from clinic_backend.models.specialty import Specialty
from clinic_backend.models.user import User


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_patient(db: Session, patient_id: int) -> User:
    patient = db.get(User, patient_id)
    if patient is None or patient.role != UserRole.PATIENT.value:
        raise NotFound('Patient')
    return patient


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise NotFound('Doctor')
    return doctor


def get_room(db: Session, room_id: int) -> Room:
    room = db.get(Room, room_id)
    if room is None:
        raise NotFound('Room')
    return room


def doctor_for_user(db: Session, user_id: int) -> Doctor | None:
    return db.query(Doctor).filter(Doctor.user_id == user_id).first()


def specialty_names(db: Session, specialty_ids: set[int]) -> dict[int, str]:
    if not specialty_ids:
        return {}
    rows = db.query(Specialty.id, Specialty.name).filter(Specialty.id.in_(specialty_ids)).all()
    return {specialty_id: name for specialty_id, name in rows}


def fees_by_type(doctor: Doctor) -> dict[str, float]:
    return {
        AppointmentType.EXAMINATION.value: float(doctor.examination_fee or 0),
        AppointmentType.CONSULTATION.value: float(doctor.consultation_fee or 0),
    }


def fee_for(doctor: Doctor, appointment_type: AppointmentType) -> float:
    return fees_by_type(doctor)[AppointmentType(appointment_type).value]


def is_staff(user: User | None) -> bool:
    return user is not None and user.role in STAFF_ROLES
