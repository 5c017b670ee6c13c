"""Tests for booking management commands."""

from __future__ import annotations

from datetime import date, timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.bookings.models import Booking

pytestmark = pytest.mark.django_db


@pytest.fixture
def legacy_bookings(make_booking):
    return {
        "complete": make_booking(status="complete", date=date(2025, 1, 1)),
        "cancelled": make_booking(status="cancelled", date=date(2025, 1, 2)),
        "active": make_booking(status="active", date=date(2025, 1, 3)),
        "mystery": make_booking(status="on_hold", date=date(2025, 1, 4)),
        "current": make_booking(status=Booking.Status.PENDING, date=date(2025, 1, 5)),
    }


def _statuses(bookings):
    return {key: Booking.objects.get(pk=booking.pk).status for key, booking in bookings.items()}


def test_legacy_statuses_are_rewritten(legacy_bookings):
    out = StringIO()

    call_command("normalize_booking_statuses", stdout=out)

    assert _statuses(legacy_bookings) == {
        "complete": "completed",
        "cancelled": "expired",
        "active": "confirmed",
        "mystery": "on_hold",
        "current": "pending",
    }
    assert "Normalised 3 booking(s)" in out.getvalue()
    assert "unknown status 'on_hold'" in out.getvalue()


def test_dry_run_changes_nothing(legacy_bookings):
    out = StringIO()

    call_command("normalize_booking_statuses", "--dry-run", stdout=out)

    assert _statuses(legacy_bookings)["complete"] == "complete"
    assert "Dry run" in out.getvalue()


def test_clean_store_reports_nothing_to_do(make_booking):
    make_booking()
    out = StringIO()

    call_command("normalize_booking_statuses", stdout=out)

    assert "already normalised" in out.getvalue()


def test_rewritten_bookings_get_a_fresh_updated_at(legacy_bookings):
    stale = timezone.now() - timedelta(days=30)
    Booking.objects.update(updated_at=stale)

    call_command("normalize_booking_statuses", stdout=StringIO())

    refreshed = Booking.objects.get(pk=legacy_bookings["complete"].pk)
    untouched = Booking.objects.get(pk=legacy_bookings["current"].pk)
    assert refreshed.updated_at > stale
    assert untouched.updated_at == stale
