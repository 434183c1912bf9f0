"""Appointment status transitions.

    Pending   -> Confirmed | Canceled
    Confirmed -> CheckedIn | Canceled
    CheckedIn -> Completed
    Completed, Canceled: terminal

A checked-in visit is already underway, so it cannot be canceled.
"""

from datetime import datetime

from clinic_backend.core.constants import AppointmentStatus, BookingChannel
from clinic_backend.core.errors import AlreadyTerminal, InvalidTransition
from clinic_backend.models.appointment import Appointment

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.CHECKED_IN, AppointmentStatus.CANCELED}),
    AppointmentStatus.CHECKED_IN: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
}

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED})


def initial_status(channel: BookingChannel) -> AppointmentStatus:
    if BookingChannel(channel) is BookingChannel.STAFF:
        return AppointmentStatus.CONFIRMED
    return AppointmentStatus.PENDING


def is_terminal(current: AppointmentStatus | str) -> bool:
    return AppointmentStatus(current) in TERMINAL_STATUSES


def ensure_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> None:
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)

    if current in TERMINAL_STATUSES:
        raise AlreadyTerminal(current.value)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)


def apply_transition(
    appointment: Appointment,
    target: AppointmentStatus | str,
    now: datetime | None = None,
) -> Appointment:
    target = AppointmentStatus(target)
    ensure_transition(appointment.status, target)

    appointment.status = target.value
    appointment.status_changed_at = now or datetime.now()
    return appointment
