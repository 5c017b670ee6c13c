"""Domain services for booking workflows: conflict detection."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.fleet.models import Castle
from shared.domain.value_objects import TimeWindow

from .exceptions import BookingConflictError
from .models import Booking

SUGGESTION_SEARCH_DAYS = 7
MAX_DATE_SUGGESTIONS = 3


@dataclass(frozen=True)
class BookingConflict:
    type: str
    booking_id: Optional[int]
    booking_ref: str
    message: str
    severity: str = "error"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConflictCheckResult:
    conflicts: List[BookingConflict] = field(default_factory=list)
    suggestions: List[dict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> dict:
        return {
            "has_conflicts": self.has_conflicts,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "suggestions": self.suggestions,
        }


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def active_bookings():
    return Booking.objects.exclude(status__in=settings.BOOKING_CONFLICT_EXCLUDED_STATUSES)


def _candidates(castle_id: int, window: TimeWindow, exclude_booking_id=None, lock: bool = False):
    days = window.days
    # A window that started the evening before can still reach into ours.
    queryset = active_bookings().filter(
        castle_id=castle_id,
        date__range=(days[0] - timedelta(days=1), days[-1]),
    )
    if exclude_booking_id is not None:
        queryset = queryset.exclude(pk=exclude_booking_id)
    if lock:
        queryset = _lock_queryset_if_possible(queryset)
    return queryset


def _describe(booking: Booking) -> str:
    if booking.start_at and booking.end_at:
        return (
            f"{booking.castle_name} is already booked on {booking.date:%d/%m/%Y} "
            f"from {timezone.localtime(booking.start_at):%H:%M} to {timezone.localtime(booking.end_at):%H:%M} "
            f"({booking.booking_ref})."
        )
    return f"{booking.castle_name} is already booked on {booking.date:%d/%m/%Y} ({booking.booking_ref})."


def find_conflicts(
    castle_id: int,
    window: TimeWindow,
    exclude_booking_id=None,
    *,
    lock: bool = False,
) -> List[BookingConflict]:
    """Active bookings and maintenance windows that clash with ``window``.

    One castle serves one event per date, so any active booking on a day
    the window touches is a conflict even when the hours do not overlap.
    """

    conflicts: List[BookingConflict] = []
    days = set(window.days)

    for booking in _candidates(castle_id, window, exclude_booking_id, lock=lock):
        if booking.date in days or booking.window.overlaps_with(window):
            conflicts.append(
                BookingConflict(
                    type="same_castle",
                    booking_id=booking.pk,
                    booking_ref=booking.booking_ref,
                    message=_describe(booking),
                )
            )

    castle = Castle.objects.filter(pk=castle_id).first()
    if castle is not None:
        blocked = sorted(day for day in days if castle.is_unavailable_on(day))
        if blocked:
            conflicts.append(
                BookingConflict(
                    type="maintenance",
                    booking_id=None,
                    booking_ref="",
                    message=(
                        f"{castle.name} is {castle.get_maintenance_status_display().lower()} "
                        f"on {blocked[0]:%d/%m/%Y}."
                    ),
                )
            )

    return conflicts


def is_castle_date_taken(castle_id: int, day: date, exclude_booking_id=None) -> bool:
    queryset = active_bookings().filter(castle_id=castle_id, date=day)
    if exclude_booking_id is not None:
        queryset = queryset.exclude(pk=exclude_booking_id)
    return queryset.exists()


def suggest_alternatives(castle_id: int, day: date, exclude_booking_id=None) -> List[dict]:
    """Nearby free dates for the same castle and other castles free that day."""

    suggestions: List[dict] = []
    castle = Castle.objects.filter(pk=castle_id).first()

    taken = active_bookings().filter(
        castle_id=castle_id,
        date__range=(day - timedelta(days=SUGGESTION_SEARCH_DAYS), day + timedelta(days=SUGGESTION_SEARCH_DAYS)),
    )
    if exclude_booking_id is not None:
        taken = taken.exclude(pk=exclude_booking_id)
    taken_days = set(taken.values_list("date", flat=True))

    offsets: Iterable[int] = sorted(
        (offset for offset in range(-SUGGESTION_SEARCH_DAYS, SUGGESTION_SEARCH_DAYS + 1) if offset),
        key=lambda offset: (abs(offset), offset < 0),
    )
    for offset in offsets:
        candidate = day + timedelta(days=offset)
        if candidate in taken_days:
            continue
        if castle is not None and castle.is_unavailable_on(candidate):
            continue
        suggestions.append({"type": "alternative_date", "date": candidate.isoformat()})
        if len(suggestions) >= MAX_DATE_SUGGESTIONS:
            break

    busy_castles = set(active_bookings().filter(date=day).values_list("castle_id", flat=True))
    for other in Castle.objects.exclude(pk=castle_id).exclude(pk__in=busy_castles):
        if other.is_unavailable_on(day):
            continue
        suggestions.append(
            {"type": "alternative_castle", "castle_id": other.pk, "castle_name": other.name}
        )

    return suggestions


def check_conflicts(
    castle_id: int,
    window: TimeWindow,
    exclude_booking_id=None,
) -> ConflictCheckResult:
    """Advisory check used by the API; has no side effects."""

    conflicts = find_conflicts(castle_id, window, exclude_booking_id)
    suggestions = (
        suggest_alternatives(castle_id, window.days[0], exclude_booking_id) if conflicts else []
    )
    return ConflictCheckResult(conflicts=conflicts, suggestions=suggestions)


def ensure_castle_is_available(
    castle_id: int,
    window: TimeWindow,
    *,
    exclude_booking_id=None,
) -> None:
    """Raise ``BookingConflictError`` when the castle is not free for ``window``.

    Candidate rows are locked where the backend supports it; the partial
    unique index on (castle, date) still has the final word.
    """

    conflicts = find_conflicts(castle_id, window, exclude_booking_id, lock=True)
    if conflicts:
        raise BookingConflictError(
            conflicts[0].message,
            conflicts=conflicts,
            suggestions=suggest_alternatives(castle_id, window.days[0], exclude_booking_id),
        )
