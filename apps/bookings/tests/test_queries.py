"""Tests for booking listing and statistics queries."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest import mock

import pytest
from django.db import OperationalError

from apps.bookings.exceptions import PersistenceError
from apps.bookings.models import Booking
from apps.bookings.queries import get_booking_stats, query_bookings

pytestmark = pytest.mark.django_db


@pytest.fixture
def bookings(make_booking, other_castle):
    return [
        make_booking(
            booking_ref="TS001",
            customer_name="Alice Jones",
            date=date(2025, 3, 10),
            status=Booking.Status.CONFIRMED,
            total_price=Decimal("75.00"),
        ),
        make_booking(
            booking_ref="TS002",
            customer_name="Bob Taylor",
            customer_email="bob@example.com",
            date=date(2025, 3, 11),
            total_price=Decimal("60.00"),
            payment_status=Booking.PaymentStatus.DEPOSIT_PAID,
        ),
        make_booking(
            booking_ref="TS003",
            castle=other_castle,
            customer_name="Carol White",
            date=date(2025, 3, 10),
            status=Booking.Status.COMPLETED,
            total_price=Decimal("80.00"),
            payment_status=Booking.PaymentStatus.PAID_FULL,
        ),
        make_booking(
            booking_ref="TS004",
            customer_name="Dan Green",
            date=date(2025, 4, 2),
            status=Booking.Status.EXPIRED,
            total_price=Decimal("90.00"),
        ),
    ]


def _refs(result):
    return [booking.booking_ref for booking in result["items"]]


def test_default_listing_sorts_by_date_descending(bookings):
    result = query_bookings()

    assert result["total"] == 4
    assert result["page"] == 1
    assert result["limit"] == 20
    assert result["total_pages"] == 1
    assert _refs(result) == ["TS004", "TS002", "TS003", "TS001"]


def test_sorting_by_amount_ascending(bookings):
    assert _refs(query_bookings(sort="amount", order="asc")) == ["TS002", "TS001", "TS003", "TS004"]


def test_unknown_sort_falls_back_to_date(bookings):
    assert _refs(query_bookings(sort="nonsense")) == _refs(query_bookings(sort="date"))


def test_filters_combine(bookings, castle):
    result = query_bookings({"castle": str(castle.pk), "date_from": "2025-03-10", "date_to": "2025-03-31"})

    assert _refs(result) == ["TS002", "TS001"]


def test_status_filter_accepts_csv_and_legacy_spellings(bookings):
    assert _refs(query_bookings({"status": "confirmed,completed"}, order="asc")) == ["TS001", "TS003"]
    assert _refs(query_bookings({"status": "complete"})) == ["TS003"]
    assert _refs(query_bookings({"status": "cancelled"})) == ["TS004"]
    assert query_bookings({"status": "archived"})["total"] == 4


def test_payment_status_and_search_filters(bookings):
    assert _refs(query_bookings({"payment_status": "paid_full"})) == ["TS003"]
    assert _refs(query_bookings({"search": "bob@"})) == ["TS002"]
    assert _refs(query_bookings({"search": "jungle"})) == ["TS003"]


def test_pagination_clamps_limit_and_page(settings, bookings):
    settings.BOOKING_MAX_PAGE_SIZE = 3

    first = query_bookings(limit="50", page="0", order="asc")
    second = query_bookings(limit=3, page=2, order="asc")
    beyond = query_bookings(limit=3, page=5)

    assert first["limit"] == 3
    assert first["page"] == 1
    assert first["total_pages"] == 2
    assert _refs(second) == ["TS004"]
    assert beyond["items"] == []
    assert beyond["total"] == 4


def test_equal_sort_keys_are_ordered_by_id(make_booking, other_castle):
    first = make_booking(booking_ref="TS010", date=date(2025, 5, 1))
    second = make_booking(booking_ref="TS011", castle=other_castle, date=date(2025, 5, 1))

    assert _refs(query_bookings(order="asc")) == [first.booking_ref, second.booking_ref]
    assert _refs(query_bookings(order="desc")) == [second.booking_ref, first.booking_ref]


def test_stats_count_every_status_and_revenue(bookings):
    stats = get_booking_stats()

    assert stats["total"] == 4
    assert stats["by_status"] == {"pending": 1, "confirmed": 1, "completed": 1, "expired": 1}
    assert stats["by_payment_status"] == {"pending": 2, "deposit_paid": 1, "paid_full": 1}
    assert stats["revenue"] == Decimal("155.00")
    assert stats["average_booking_value"] == Decimal("77.50")
    assert [row["castle_name"] for row in stats["popular_castles"]] == ["Princess Palace", "Jungle Adventure"]
    assert stats["popular_castles"][0]["bookings"] == 3
    assert stats["popular_castles"][0]["revenue"] == Decimal("75.00")


def test_stats_respect_filters(bookings):
    stats = get_booking_stats({"date_from": "2025-03-11"})

    assert stats["total"] == 2
    assert stats["revenue"] == Decimal("0.00")


def test_stats_on_empty_store(castle):
    stats = get_booking_stats()

    assert stats["total"] == 0
    assert stats["by_status"] == {"pending": 0, "confirmed": 0, "completed": 0, "expired": 0}
    assert stats["revenue"] == Decimal("0.00")
    assert stats["popular_castles"] == []


def test_transient_read_failures_are_retried(bookings):
    real_count = Booking.objects.all().count
    calls = {"count": 0}

    def flaky_count(self):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("connection reset")
        return real_count()

    with mock.patch("django.db.models.query.QuerySet.count", flaky_count):
        result = query_bookings()

    assert result["total"] == 4
    assert calls["count"] == 2


def test_persistent_read_failure_becomes_persistence_error(castle):
    with mock.patch("django.db.models.query.QuerySet.count", side_effect=OperationalError("down")):
        with pytest.raises(PersistenceError):
            query_bookings()
