"""Tests for the booking status machine and the transition handler."""

from __future__ import annotations

import itertools

import pytest

from apps.bookings.application.command_handlers import TransitionStatusCommand, TransitionStatusHandler
from apps.bookings.domain.status import (
    TRANSITIONS,
    BookingStatus,
    can_transition,
    ensure_transition,
    is_terminal,
    normalize_status,
)
from apps.bookings.exceptions import BookingNotFoundError, BookingValidationError, InvalidTransition
from apps.bookings.models import Booking, BookingAuditEntry

ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "expired"),
    ("confirmed", "completed"),
    ("confirmed", "expired"),
}


@pytest.mark.parametrize("current,target", list(itertools.product(BookingStatus.ALL, repeat=2)))
def test_transition_table(current, target):
    expected = current == target or (current, target) in ALLOWED
    assert can_transition(current, target) is expected
    if expected:
        ensure_transition(current, target)
    else:
        with pytest.raises(InvalidTransition) as exc_info:
            ensure_transition(current, target)
        assert exc_info.value.to_dict()["current_status"] == current
        assert exc_info.value.to_dict()["requested_status"] == target


def test_terminal_states_have_no_exits():
    assert is_terminal(BookingStatus.COMPLETED)
    assert is_terminal(BookingStatus.EXPIRED)
    assert not is_terminal(BookingStatus.CONFIRMED)
    assert TRANSITIONS[BookingStatus.COMPLETED] == frozenset()


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("complete", "completed"),
        ("Cancelled", "expired"),
        ("canceled", "expired"),
        ("active", "confirmed"),
        (" PENDING ", "pending"),
    ],
)
def test_legacy_spellings_are_normalised(raw, expected):
    assert normalize_status(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "archived"])
def test_unknown_statuses_are_rejected(raw):
    with pytest.raises(BookingValidationError):
        normalize_status(raw)


@pytest.mark.django_db
class TestTransitionHandler:
    def test_illegal_transition_leaves_status_unchanged(self, make_booking):
        booking = make_booking()

        with pytest.raises(InvalidTransition):
            TransitionStatusHandler().handle(
                TransitionStatusCommand(booking_id=booking.pk, target_status="completed")
            )

        booking.refresh_from_db()
        assert booking.status == Booking.Status.PENDING
        assert not BookingAuditEntry.objects.filter(booking_id=booking.pk).exists()

    def test_legal_transition_is_audited(self, make_booking):
        booking = make_booking()

        updated = TransitionStatusHandler().handle(
            TransitionStatusCommand(
                booking_id=booking.pk,
                target_status="confirmed",
                actor_details="office",
                reason="Deposit received",
            )
        )

        assert updated.status == Booking.Status.CONFIRMED
        entry = BookingAuditEntry.objects.get(booking_id=booking.pk)
        assert entry.action == BookingAuditEntry.Action.STATUS_CHANGE
        assert entry.actor == BookingAuditEntry.Actor.ADMIN
        assert entry.details == {"from": "pending", "to": "confirmed", "reason": "Deposit received"}

    def test_same_state_is_a_no_op(self, make_booking):
        booking = make_booking(status=Booking.Status.CONFIRMED)

        TransitionStatusHandler().handle(
            TransitionStatusCommand(booking_id=booking.pk, target_status="confirmed")
        )

        assert not BookingAuditEntry.objects.filter(booking_id=booking.pk).exists()

    def test_terminal_booking_cannot_be_reopened(self, make_booking):
        booking = make_booking(status=Booking.Status.EXPIRED)

        with pytest.raises(InvalidTransition):
            TransitionStatusHandler().handle(
                TransitionStatusCommand(booking_id=booking.pk, target_status="pending")
            )

    def test_missing_booking(self, castle):
        with pytest.raises(BookingNotFoundError):
            TransitionStatusHandler().handle(TransitionStatusCommand(booking_id=424242, target_status="confirmed"))

    def test_events_are_published_after_commit(self, make_booking, django_capture_on_commit_callbacks):
        from apps.bookings.domain.events import BookingStatusChanged
        from shared.application.message_bus import message_bus

        received = []
        message_bus.register_event_handler(BookingStatusChanged, received.append)
        booking = make_booking()

        try:
            with django_capture_on_commit_callbacks(execute=True):
                TransitionStatusHandler().handle(
                    TransitionStatusCommand(booking_id=booking.pk, target_status="expired")
                )
        finally:
            message_bus._event_handlers[BookingStatusChanged].remove(received.append)

        assert len(received) == 1
        assert received[0].booking_ref == booking.booking_ref
        assert received[0].previous_status == "pending"
        assert received[0].new_status == "expired"
