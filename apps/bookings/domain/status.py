"""
Booking Status Machine

    pending   -> confirmed, expired
    confirmed -> completed, expired
    completed -> (terminal)
    expired   -> (terminal)

Re-applying the current status is always allowed and changes nothing.
"""

from typing import Dict, FrozenSet

from apps.bookings.exceptions import BookingValidationError, InvalidTransition


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    EXPIRED = "expired"

    ALL = (PENDING, CONFIRMED, COMPLETED, EXPIRED)
    TERMINAL = frozenset({COMPLETED, EXPIRED})


TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.EXPIRED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.EXPIRED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}

# Spellings written by older versions of the admin.
LEGACY_STATUSES: Dict[str, str] = {
    "complete": BookingStatus.COMPLETED,
    "cancelled": BookingStatus.EXPIRED,
    "canceled": BookingStatus.EXPIRED,
    "active": BookingStatus.CONFIRMED,
}


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    """Raise ``InvalidTransition`` unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def is_terminal(status: str) -> bool:
    return status in BookingStatus.TERMINAL


def normalize_status(value) -> str:
    """
    Map a raw status value to the closed enumeration

    Applied once at the boundary (API input, data migration command).
    Unknown values raise ``BookingValidationError``.
    """
    if value is None:
        raise BookingValidationError("Status is required.", errors={"status": ["This field is required."]})

    status = str(value).strip().lower()
    status = LEGACY_STATUSES.get(status, status)
    if status not in TRANSITIONS:
        raise BookingValidationError(
            f"Unknown booking status '{value}'.",
            errors={"status": [f"Must be one of: {', '.join(BookingStatus.ALL)}."]},
        )
    return status
