"""Error kinds surfaced by the scheduling engine.

Every ``SchedulingError`` is an expected outcome that is reported to the
caller as-is. ``StorageUnavailable`` is an infrastructure failure and is kept
outside that hierarchy so callers can tell the two apart.
"""


class SchedulingError(Exception):
    status_code = 400
    default_message = 'Scheduling request failed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DoctorUnavailable(SchedulingError):
    """Requested time is outside working hours or the day is unavailable."""
    status_code = 400
    default_message = 'Doctor is not available at the requested time.'


class SlotConflict(SchedulingError):
    """Another active appointment already holds the slot."""
    status_code = 409
    default_message = 'Time slot is already booked.'


class InvalidTransition(SchedulingError):
    status_code = 400
    default_message = 'This change is not allowed in the current appointment state.'


class NotFound(SchedulingError):
    status_code = 404
    default_message = 'Resource not found.'


class StorageUnavailable(Exception):
    status_code = 503
    default_message = 'Database unavailable. Verify DATABASE_URL and database credentials.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)
