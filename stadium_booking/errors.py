"""
Domain errors raised by the booking engine.

Each error carries a machine-readable ``error`` code and the HTTP status
the API layer maps it to.  Expected business outcomes (a slot being taken,
a day being closed) are returned as structured results by the availability
queries; these exceptions are for operations that cannot proceed.
"""

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base class for all engine errors."""

    error: str = "booking_error"
    status_code: int = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or None


class NotFound(BookingError):
    error = "not_found"
    status_code = 404


class InvalidTimeRange(BookingError):
    error = "invalid_time_range"
    status_code = 422


class SlotConflict(BookingError):
    error = "slot_conflict"
    status_code = 409


class ScheduleClosed(BookingError):
    error = "schedule_closed"
    status_code = 409


class PastDate(BookingError):
    error = "past_date"
    status_code = 422


class Unauthorized(BookingError):
    error = "unauthorized"
    status_code = 403


class CancellationWindowClosed(BookingError):
    error = "cancellation_window_closed"
    status_code = 409


class InvalidTransition(BookingError):
    """A status change that the reservation's current state does not allow."""

    error = "invalid_transition"
    status_code = 409


class StaleReservation(InvalidTransition):
    """The reservation was written by someone else after it was read."""

    error = "stale_reservation"
