"""
Exception hierarchy for the court reservation engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import AvailabilityReason, Conflict


class ReservationError(Exception):
    """Base class for all engine errors."""

    code = "reservation_error"


class InvalidIntervalError(ReservationError, ValueError):
    """Raised for malformed intervals (end not after start). Always a caller bug."""

    code = "invalid_interval"


class NoOperatingHoursError(ReservationError):
    """Raised when a caller requires slots for a day the court is closed."""

    code = "no_operating_hours"


class ConflictError(ReservationError):
    """Raised when the requested interval overlaps a live reservation."""

    code = "conflict"

    def __init__(self, message: str, conflicts: Sequence[Conflict] = ()) -> None:
        super().__init__(message)
        self.conflicts = list(conflicts)


class PolicyViolationError(ReservationError):
    """Raised when booking rules (advance notice, horizon, court status) forbid a request."""

    code = "policy_violation"

    def __init__(self, message: str, reason: AvailabilityReason) -> None:
        super().__init__(message)
        self.reason = reason


class ReservationStateError(ReservationError):
    """Raised for lifecycle transitions that the current status does not allow."""

    code = "invalid_state"


class ReservationNotFoundError(ReservationError, LookupError):
    code = "not_found"


class UnknownCourtError(ReservationError, LookupError):
    code = "unknown_court"


class StorageError(ReservationError, RuntimeError):
    """Raised when the durable store cannot be read or written."""

    code = "storage_error"
