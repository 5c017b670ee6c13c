"""
Common Value Objects

Value objects used across the fleet and booking domains:
- TimeWindow: a half-open [start, end) interval of aware datetimes
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from django.utils import timezone  # type: ignore

from shared.domain.base import ValueObject


@dataclass(frozen=True)
class TimeWindow(ValueObject):
    """
    Time window value object

    Represents the period from ``start`` (inclusive) to ``end`` (exclusive).
    Bookings without explicit times occupy a full calendar day.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Window start ({self.start}) must be before end ({self.end})")

    @classmethod
    def full_day(cls, day: date, tz=None) -> 'TimeWindow':
        """Window covering ``day`` from midnight to the next midnight."""
        tz = tz or timezone.get_current_timezone()
        start = datetime.combine(day, time.min, tzinfo=tz)
        return cls(start, start + timedelta(days=1))

    @classmethod
    def for_dates(cls, first_day: date, last_day: date, tz=None) -> 'TimeWindow':
        """Window covering ``first_day`` through ``last_day`` inclusive."""
        tz = tz or timezone.get_current_timezone()
        start = datetime.combine(first_day, time.min, tzinfo=tz)
        end = datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=tz)
        return cls(start, end)

    def overlaps_with(self, other: 'TimeWindow') -> bool:
        """
        Check if this window overlaps with another

        Adjacent windows (one ends exactly when the other starts) do not
        overlap.

        Examples:
            - 10:00-14:00 overlaps with 13:00-18:00 -> True
            - 10:00-14:00 overlaps with 14:00-18:00 -> False (adjacent)
        """
        if not isinstance(other, TimeWindow):
            raise TypeError("Can only check overlap with another TimeWindow")

        # Overlap formula: start1 < end2 AND end1 > start2
        return self.start < other.end and self.end > other.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    @property
    def days(self) -> list[date]:
        """Calendar days (local time) touched by this window."""
        first = timezone.localtime(self.start).date()
        last = timezone.localtime(self.end - timedelta(microseconds=1)).date()
        return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]

    def __str__(self):
        return f"{self.start.strftime('%d.%m.%Y %H:%M')} - {self.end.strftime('%d.%m.%Y %H:%M')}"

    def __repr__(self):
        return f"TimeWindow({self.start.isoformat()}, {self.end.isoformat()})"
