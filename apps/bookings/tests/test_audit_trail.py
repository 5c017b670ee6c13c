"""Tests for the append-only booking audit trail."""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.bookings import audit
from apps.bookings.application.command_handlers import (
    DeleteBookingCommand,
    DeleteBookingHandler,
    RecordEmailEventCommand,
    RecordEmailEventHandler,
)
from apps.bookings.exceptions import AuditTrailImmutableError, BookingValidationError
from apps.bookings.models import Booking, BookingAuditEntry

pytestmark = pytest.mark.django_db

Action = BookingAuditEntry.Action
Actor = BookingAuditEntry.Actor


def _snapshot(booking_id):
    return list(
        BookingAuditEntry.objects.filter(booking_id=booking_id)
        .order_by("id")
        .values_list("id", "action", "actor", "details")
    )


def test_append_refreshes_booking_updated_at(make_booking):
    booking = make_booking()
    stale = timezone.now() - timedelta(days=3)
    Booking.objects.filter(pk=booking.pk).update(updated_at=stale)

    audit.record_status_change(booking, "pending", "confirmed", Actor.ADMIN, "office")

    booking.refresh_from_db()
    assert booking.updated_at > stale


def test_entries_keep_their_position_as_the_trail_grows(make_booking):
    booking = make_booking()
    audit.record_booking_created(booking, Actor.ADMIN, "office")
    audit.record_email_event(booking, "sent")
    before = _snapshot(booking.pk)

    audit.record_payment_status_change(booking, "pending", "paid_full", "office", "Card payment")
    after = _snapshot(booking.pk)

    assert after[: len(before)] == before
    assert len(after) == len(before) + 1
    assert [entry.action for entry in audit.trail_for(booking.pk)] == [
        Action.BOOKING_CREATED,
        Action.AGREEMENT_EMAIL_SENT,
        Action.PAYMENT_STATUS_CHANGE,
    ]


def test_saved_entry_cannot_be_edited(make_booking):
    booking = make_booking()
    entry = audit.record_booking_created(booking, Actor.ADMIN)
    entry.actor_details = "someone else"

    with pytest.raises(AuditTrailImmutableError):
        entry.save()

    entry.refresh_from_db()
    assert entry.actor_details == ""


def test_entries_cannot_be_deleted(make_booking):
    booking = make_booking()
    entry = audit.record_booking_created(booking, Actor.ADMIN)

    with pytest.raises(AuditTrailImmutableError):
        entry.delete()
    with pytest.raises(AuditTrailImmutableError):
        BookingAuditEntry.objects.filter(pk=entry.pk).delete()
    with pytest.raises(AuditTrailImmutableError):
        BookingAuditEntry.objects.filter(pk=entry.pk).update(actor=Actor.SYSTEM)

    assert BookingAuditEntry.objects.filter(pk=entry.pk).exists()


def test_trail_survives_booking_deletion(make_booking):
    booking = make_booking()
    audit.record_booking_created(booking, Actor.ADMIN)
    booking_id, booking_ref = booking.pk, booking.booking_ref

    DeleteBookingHandler().handle(DeleteBookingCommand(booking_id=booking_id))

    entries = list(audit.trail_for(booking_id))
    assert [entry.booking_ref for entry in entries] == [booking_ref]
    assert not Booking.objects.filter(pk=booking_id).exists()


def test_email_events_default_actor_by_kind(make_booking):
    booking = make_booking()

    sent = audit.record_email_event(booking, "sent", email_type="confirmation")
    opened = audit.record_email_event(booking, "opened", ip_address="203.0.113.7", user_agent="Mail/1.0")
    clicked = audit.record_email_event(booking, "clicked", details={"link": "agreement"})

    assert (sent.action, sent.actor) == (Action.AGREEMENT_EMAIL_SENT, Actor.SYSTEM)
    assert sent.details == {"email_type": "confirmation"}
    assert (opened.action, opened.actor) == (Action.EMAIL_OPENED, Actor.CUSTOMER)
    assert opened.ip_address == "203.0.113.7"
    assert opened.actor_details == booking.customer_email
    assert clicked.details == {"email_type": "agreement", "link": "agreement"}
    assert {entry.method for entry in (sent, opened, clicked)} == {"email"}


def test_email_event_handler_validates_event_name(make_booking):
    booking = make_booking()

    with pytest.raises(BookingValidationError):
        RecordEmailEventHandler().handle(RecordEmailEventCommand(booking_id=booking.pk, event="bounced"))

    assert not BookingAuditEntry.objects.exists()
