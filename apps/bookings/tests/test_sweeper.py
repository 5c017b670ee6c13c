"""Tests for the periodic task that completes finished bookings."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from django.utils import timezone

from apps.bookings.models import Booking, BookingAuditEntry
from apps.bookings.tasks import complete_finished_bookings, upcoming_completions

pytestmark = pytest.mark.django_db


def test_confirmed_booking_past_its_end_is_completed(make_booking, at):
    booking = make_booking(
        status=Booking.Status.CONFIRMED,
        date=date(2025, 3, 10),
        start_at=at(date(2025, 3, 10), 10),
        end_at=at(date(2025, 3, 10), 16),
    )
    stale = at(date(2025, 3, 1), 9)
    Booking.objects.filter(pk=booking.pk).update(updated_at=stale)

    summary = complete_finished_bookings(now=at(date(2025, 3, 10), 18))

    booking.refresh_from_db()
    assert booking.status == Booking.Status.COMPLETED
    assert booking.updated_at > stale
    assert summary["checked"] == 1
    assert summary["completed"] == 1
    assert summary["errors"] == []
    assert summary["transitions"] == [
        {
            "booking_id": booking.pk,
            "booking_ref": booking.booking_ref,
            "from": "confirmed",
            "to": "completed",
            "ended_at": at(date(2025, 3, 10), 16).isoformat(),
        }
    ]
    assert not BookingAuditEntry.objects.filter(booking_id=booking.pk).exists()


def test_booking_still_running_is_left_alone(make_booking, at):
    booking = make_booking(
        status=Booking.Status.CONFIRMED,
        start_at=at(date(2025, 3, 10), 10),
        end_at=at(date(2025, 3, 10), 16),
    )

    summary = complete_finished_bookings(now=at(date(2025, 3, 10), 15))

    booking.refresh_from_db()
    assert booking.status == Booking.Status.CONFIRMED
    assert summary["checked"] == 1
    assert summary["completed"] == 0


def test_date_only_booking_ends_at_default_hour(settings, make_booking, at):
    settings.BOOKING_DEFAULT_END_HOUR = 17
    booking = make_booking(status=Booking.Status.CONFIRMED, date=date(2025, 3, 10))

    before = complete_finished_bookings(now=at(date(2025, 3, 10), 16, 59))
    after = complete_finished_bookings(now=at(date(2025, 3, 10), 17, 1))

    assert before["completed"] == 0
    assert after["completed"] == 1
    booking.refresh_from_db()
    assert booking.status == Booking.Status.COMPLETED


@pytest.mark.parametrize("status", [Booking.Status.PENDING, Booking.Status.EXPIRED, Booking.Status.COMPLETED])
def test_only_confirmed_bookings_are_swept(make_booking, at, status):
    booking = make_booking(status=status, date=date(2025, 3, 10))

    summary = complete_finished_bookings(now=at(date(2025, 3, 12), 9))

    booking.refresh_from_db()
    assert booking.status == status
    assert summary["checked"] == 0


def test_future_bookings_are_not_checked(make_booking, at):
    make_booking(status=Booking.Status.CONFIRMED, date=date(2025, 3, 20))

    summary = complete_finished_bookings(now=at(date(2025, 3, 10), 18))

    assert summary == {"checked": 0, "completed": 0, "transitions": [], "errors": []}


def test_sweeper_publishes_status_change_after_commit(make_booking, at, django_capture_on_commit_callbacks):
    from apps.bookings.domain.events import BookingStatusChanged
    from shared.application.message_bus import message_bus

    received = []
    message_bus.register_event_handler(BookingStatusChanged, received.append)
    booking = make_booking(status=Booking.Status.CONFIRMED, date=date(2025, 3, 10))

    try:
        with django_capture_on_commit_callbacks(execute=True):
            complete_finished_bookings(now=at(date(2025, 3, 11), 9))
    finally:
        message_bus._event_handlers[BookingStatusChanged].remove(received.append)

    assert [(event.booking_ref, event.new_status, event.actor) for event in received] == [
        (booking.booking_ref, "completed", "system")
    ]


def test_task_runs_through_celery(make_booking):
    make_booking(status=Booking.Status.CONFIRMED, date=date(2025, 3, 10))

    result = complete_finished_bookings.delay()

    assert result.get()["completed"] == 1


def test_upcoming_completions_lists_bookings_ending_soon(make_booking, at):
    now = at(date(2025, 3, 10), 12)
    soon = make_booking(
        status=Booking.Status.CONFIRMED,
        date=date(2025, 3, 10),
        start_at=at(date(2025, 3, 10), 10),
        end_at=at(date(2025, 3, 10), 15),
    )
    make_booking(status=Booking.Status.CONFIRMED, date=date(2025, 3, 14))
    make_booking(status=Booking.Status.PENDING, date=date(2025, 3, 11))

    upcoming = upcoming_completions(hours_ahead=24, now=now)

    assert [item["booking_ref"] for item in upcoming] == [soon.booking_ref]
    assert upcoming[0]["hours_remaining"] == 3.0
    assert Booking.objects.get(pk=soon.pk).status == Booking.Status.CONFIRMED


def test_upcoming_completions_respects_the_horizon(make_booking):
    now = timezone.now()
    make_booking(
        status=Booking.Status.CONFIRMED,
        date=timezone.localdate(now + timedelta(hours=30)),
        start_at=now + timedelta(hours=28),
        end_at=now + timedelta(hours=30),
    )

    assert upcoming_completions(hours_ahead=24, now=now) == []
    assert len(upcoming_completions(hours_ahead=48, now=now)) == 1
