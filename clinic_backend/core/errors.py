"""Error types raised by the scheduling and booking services.

Every error carries the HTTP status code and the user-facing detail the
route layer reports, so handlers can translate them without a lookup table.
"""

from fastapi import status


class ClinicError(Exception):
    """Base class for failures reported synchronously to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidWindow(ClinicError):
    default_detail = 'Start time must be before end time and capacity must be at least 1.'


class DateMismatch(ClinicError):
    default_detail = 'Appointment date does not fall on the schedule weekday.'


class DateInPast(ClinicError):
    default_detail = 'Appointments cannot be booked for past dates.'


class NotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = 'Resource'):
        super().__init__(f'{resource} not found.')


class ScheduleNotFound(NotFound):
    def __init__(self):
        super().__init__('Schedule')


class ParentNotFound(NotFound):
    def __init__(self):
        super().__init__('Parent appointment')


class FollowUpBeforeParent(ClinicError):
    default_detail = 'Follow-up must be after the parent appointment.'


class ParentCanceled(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Cannot schedule a follow-up for a canceled appointment.'


class DuplicateTemplate(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This doctor already has a schedule starting at that time on that day.'


class RoomConflict(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Room is already booked for this time slot.'


class TemplateInUse(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Schedule has appointments and cannot be deleted.'


class CapacityBelowBookings(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Capacity cannot be lowered below existing bookings.'


class InvalidTransition(ClinicError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f'Cannot move appointment from {current} to {target}.')


class AlreadyTerminal(ClinicError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str):
        self.current = current
        super().__init__(f'Appointment is already {current.lower()}.')


class Forbidden(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to modify this appointment.'


class PersistenceUnavailable(ClinicError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Database unavailable. Verify DATABASE_URL and database credentials.'
