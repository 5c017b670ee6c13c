"""Shared pytest fixtures for the booking and fleet test suites."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from apps.bookings.models import Booking
from apps.bookings.references import lowest_free_reference
from apps.fleet.models import Castle


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(
        username="office",
        email="office@example.com",
        password="OfficePass123",
        is_staff=True,
    )


@pytest.fixture
def api_client(staff_user):
    client = APIClient()
    client.force_authenticate(staff_user)
    return client


@pytest.fixture
def castle(db):
    return Castle.objects.create(
        pk=5,
        name="Princess Palace",
        theme="Princess",
        size="15ft x 15ft",
        price=Decimal("75.00"),
    )


@pytest.fixture
def other_castle(db):
    return Castle.objects.create(
        pk=6,
        name="Jungle Adventure",
        theme="Jungle",
        size="12ft x 18ft with slide",
        price=Decimal("80.00"),
    )


@pytest.fixture
def at():
    """Aware datetime in the project timezone: ``at(date(2025, 3, 10), 14)``."""

    def build(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime.combine(day, time(hour, minute), tzinfo=timezone.get_current_timezone())

    return build


@pytest.fixture
def make_booking(castle):
    """Insert a booking row directly, skipping the create workflow."""

    def build(**fields) -> Booking:
        target = fields.pop("castle", castle)
        values = {
            "customer_name": "Jane Smith",
            "customer_email": "jane@example.com",
            "customer_phone": "07700 900123",
            "castle": target,
            "castle_name": target.name if target else "Retired castle",
            "date": date(2025, 3, 10),
            "total_price": Decimal("75.00"),
            "deposit": Decimal("18.75"),
            "status": Booking.Status.PENDING,
        }
        values.update(fields)
        values.setdefault("booking_ref", lowest_free_reference())
        return Booking.objects.create(**values)

    return build
