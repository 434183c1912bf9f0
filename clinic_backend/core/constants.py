from datetime import date
from enum import Enum, IntEnum


class Weekday(IntEnum):
    """Day of the week, stored by ordinal so MON sorts before SUN."""

    MON = 0
    TUE = 1
    WED = 2
    THU = 3
    FRI = 4
    SAT = 5
    SUN = 6

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_label(cls, label: str) -> 'Weekday':
        normalized = label.strip().upper()[:3]
        try:
            return cls[normalized]
        except KeyError as exc:
            raise ValueError(f'Unknown weekday: {label!r}') from exc

    @classmethod
    def from_date(cls, value: date) -> 'Weekday':
        return cls(value.weekday())


class AppointmentType(str, Enum):
    EXAMINATION = 'Examination'
    CONSULTATION = 'Consultation'


class AppointmentStatus(str, Enum):
    PENDING = 'Pending'
    CONFIRMED = 'Confirmed'
    CHECKED_IN = 'CheckedIn'
    COMPLETED = 'Completed'
    CANCELED = 'Canceled'


class BookingChannel(str, Enum):
    SELF_SERVICE = 'self_service'
    STAFF = 'staff'


class UserRole(str, Enum):
    PATIENT = 'patient'
    DOCTOR = 'doctor'
    RECEPTIONIST = 'receptionist'
    ADMIN = 'admin'


STAFF_ROLES = frozenset({UserRole.RECEPTIONIST.value, UserRole.ADMIN.value})
