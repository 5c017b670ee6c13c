"""Tests for input validation inside the booking command handlers."""

from __future__ import annotations

from datetime import date

import pytest

from apps.bookings.application.command_handlers import (
    CreateBookingCommand,
    CreateBookingHandler,
    RecordEmailEventCommand,
    RecordEmailEventHandler,
)
from apps.bookings.exceptions import BookingValidationError
from apps.bookings.models import Booking, BookingAuditEntry

pytestmark = pytest.mark.django_db


def _command(castle, **overrides):
    values = {
        "customer_name": "John Brown",
        "customer_email": "john@example.com",
        "customer_phone": "07700 900456",
        "castle_id": castle.pk,
        "date": date(2025, 3, 10),
    }
    values.update(overrides)
    return CreateBookingCommand(**values)


@pytest.mark.parametrize("value", ["nan", "NaN", "inf", "-Infinity"])
def test_non_finite_duration_is_a_validation_error(castle, value):
    with pytest.raises(BookingValidationError) as exc_info:
        CreateBookingHandler().handle(_command(castle, duration_hours=value))

    assert "duration_hours" in exc_info.value.to_dict()["errors"]
    assert not Booking.objects.exists()


@pytest.mark.parametrize("field_name", ["total_price", "deposit"])
def test_non_finite_money_is_a_validation_error(castle, field_name):
    with pytest.raises(BookingValidationError) as exc_info:
        CreateBookingHandler().handle(_command(castle, **{field_name: "nan"}))

    assert field_name in exc_info.value.to_dict()["errors"]


@pytest.mark.parametrize("details", [[1, 2], "opened twice", 7])
def test_email_event_details_must_be_a_mapping(make_booking, details):
    booking = make_booking()

    with pytest.raises(BookingValidationError):
        RecordEmailEventHandler().handle(
            RecordEmailEventCommand(booking_id=booking.pk, event="sent", details=details)
        )

    assert not BookingAuditEntry.objects.exists()
