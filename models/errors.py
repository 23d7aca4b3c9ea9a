"""Scheduling error types."""

from typing import List, Optional


class SchedulingError(Exception):
    """Base class for expected scheduling outcomes that reject a request."""

    code = 'scheduling_error'

    def __init__(self, message: str, appointment_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.appointment_id = appointment_id

    def to_dict(self) -> dict:
        """Convert to result dictionary."""
        return {
            'success': False,
            'error': self.message,
            'error_code': self.code
        }


class ConflictError(SchedulingError):
    """Requested interval overlaps an existing active appointment."""

    code = 'conflict'

    def __init__(self, message: str, conflicting_ids: Optional[List[str]] = None,
                 appointment_id: Optional[str] = None):
        super().__init__(message, appointment_id=appointment_id)
        self.conflicting_ids = conflicting_ids or []

    def to_dict(self) -> dict:
        result = super().to_dict()
        result['conflicting_ids'] = list(self.conflicting_ids)
        return result


class UnavailableError(SchedulingError):
    """Requested interval is outside working hours or inside a break."""

    code = 'unavailable'


class NotFoundError(SchedulingError):
    """Referenced appointment does not exist."""

    code = 'not_found'


class InvalidStateError(SchedulingError):
    """Transition is not allowed from the appointment's current status."""

    code = 'invalid_state'


class UnsupportedRecurrenceError(SchedulingError):
    """Recurrence frequency cannot be expanded."""

    code = 'unsupported_recurrence'
