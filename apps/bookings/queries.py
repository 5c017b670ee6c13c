"""Read side of the booking store: listing and aggregate stats.

Pure reads with no side effects. Idempotent, so they run under the read
retry policy.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Mapping, Optional

from django.conf import settings  # type: ignore
from django.db.models import Avg, Count, Q, Sum  # type: ignore

from shared.application.retry import READ_RETRY, guarded

from .domain.status import BookingStatus
from .filters import BookingFilterSet
from .models import Booking

SORT_FIELDS = {
    "date": "date",
    "created": "created_at",
    "updated": "updated_at",
    "customer": "customer_name",
    "amount": "total_price",
}
REVENUE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
POPULAR_CASTLES_LIMIT = 5


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def filtered_bookings(filters: Optional[Mapping[str, Any]] = None):
    return BookingFilterSet(data=filters or {}, queryset=Booking.objects.all()).qs


def query_bookings(
    filters: Optional[Mapping[str, Any]] = None,
    sort: str = "date",
    order: str = "desc",
    page: Any = 1,
    limit: Any = None,
) -> dict:
    """Return ``{items, total, page, limit, total_pages}`` for the given filters."""

    field = SORT_FIELDS.get(sort, SORT_FIELDS["date"])
    prefix = "" if str(order).lower() == "asc" else "-"
    limit = min(_positive_int(limit, settings.BOOKING_PAGE_SIZE), settings.BOOKING_MAX_PAGE_SIZE)
    page = _positive_int(page, 1)

    queryset = filtered_bookings(filters).order_by(f"{prefix}{field}", f"{prefix}id")

    def run(attempt: int) -> dict:
        total = queryset.count()
        offset = (page - 1) * limit
        return {
            "items": list(queryset[offset:offset + limit]),
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    return guarded(READ_RETRY, run, target="bookings")


def get_booking_stats(filters: Optional[Mapping[str, Any]] = None) -> dict:
    """Counts by status, revenue and the most booked castles.

    Revenue is the total price of confirmed and completed bookings.
    """

    queryset = filtered_bookings(filters)

    def run(attempt: int) -> dict:
        by_status = {status: 0 for status in BookingStatus.ALL}
        for row in queryset.order_by().values("status").annotate(count=Count("id")):
            by_status[row["status"]] = row["count"]

        by_payment_status = {status: 0 for status in Booking.PaymentStatus.values}
        for row in queryset.order_by().values("payment_status").annotate(count=Count("id")):
            by_payment_status[row["payment_status"]] = row["count"]

        revenue_rows = queryset.filter(status__in=REVENUE_STATUSES).aggregate(
            revenue=Sum("total_price"),
            average=Avg("total_price"),
        )
        revenue = revenue_rows["revenue"] or Decimal("0.00")
        average = revenue_rows["average"] or Decimal("0.00")

        popular = (
            queryset.order_by().values("castle_id", "castle_name")
            .annotate(bookings=Count("id"), revenue=Sum("total_price", filter=Q(status__in=REVENUE_STATUSES)))
            .order_by("-bookings", "castle_name")[:POPULAR_CASTLES_LIMIT]
        )

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_payment_status": by_payment_status,
            "revenue": Decimal(revenue).quantize(Decimal("0.01")),
            "average_booking_value": Decimal(average).quantize(Decimal("0.01")),
            "popular_castles": [
                {
                    "castle_id": row["castle_id"],
                    "castle_name": row["castle_name"],
                    "bookings": row["bookings"],
                    "revenue": Decimal(row["revenue"] or 0).quantize(Decimal("0.01")),
                }
                for row in popular
            ],
        }

    return guarded(READ_RETRY, run, target="booking_stats")
