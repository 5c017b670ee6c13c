"""Booking error taxonomy.

Each error knows its HTTP status; ``shared.infrastructure.api`` renders
them. None of them is retried automatically except inside the reference
allocator.
"""

from __future__ import annotations

from typing import Iterable

from shared.domain.exceptions import DomainError, PersistenceError

__all__ = [
    "BookingError",
    "BookingValidationError",
    "BookingConflictError",
    "InvalidTransition",
    "BookingNotFoundError",
    "AuditTrailImmutableError",
    "ReferenceAllocationError",
    "PersistenceError",
]


class BookingError(DomainError):
    default_code = "booking_error"


class BookingValidationError(BookingError):
    """Malformed or missing input."""

    status_code = 400
    default_code = "validation_error"
    default_message = "Invalid booking data."

    def __init__(self, message=None, *, errors=None, **extra):  # type: ignore
        if errors:
            extra["errors"] = errors
        super().__init__(message, **extra)


class BookingConflictError(BookingError):
    """The castle is already taken (or under maintenance) for the window."""

    status_code = 409
    default_code = "booking_conflict"
    default_message = "The castle is not available for the selected date."

    def __init__(self, message=None, *, conflicts: Iterable = (), suggestions: Iterable = ()):  # type: ignore
        self.conflicts = list(conflicts)
        self.suggestions = list(suggestions)
        super().__init__(
            message,
            conflicts=[conflict.to_dict() for conflict in self.conflicts],
            suggestions=self.suggestions,
        )


class InvalidTransition(BookingError):
    status_code = 409
    default_code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change booking status from '{current}' to '{requested}'.",
            current_status=current,
            requested_status=requested,
        )


class BookingNotFoundError(BookingError):
    status_code = 404
    default_code = "not_found"

    def __init__(self, booking_id):  # type: ignore
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found.", booking_id=booking_id)


class AuditTrailImmutableError(BookingError):
    status_code = 409
    default_code = "audit_trail_immutable"
    default_message = "Audit entries cannot be changed or removed."


class ReferenceAllocationError(BookingError):
    """No unique booking reference could be stored after bounded retries."""

    status_code = 503
    default_code = "reference_allocation_failed"
    default_message = "Could not allocate a booking reference. Please try again."
