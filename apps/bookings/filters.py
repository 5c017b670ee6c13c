"""FilterSet definitions for booking listing and stats."""

from __future__ import annotations

import django_filters  # type: ignore
from django.db.models import Q  # type: ignore

from .domain.status import LEGACY_STATUSES, TRANSITIONS
from .models import Booking


class BookingFilterSet(django_filters.FilterSet):
    """Filters shared by the booking list, stats and reports.

    Values that do not parse are dropped instead of failing the request.
    """

    # CSV of statuses, legacy spellings accepted
    status = django_filters.CharFilter(method="filter_status")
    date_from = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="date", lookup_expr="lte")
    castle = django_filters.NumberFilter(field_name="castle_id", lookup_expr="exact")
    payment_status = django_filters.ChoiceFilter(choices=Booking.PaymentStatus.choices)
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Booking
        fields = ["status", "date_from", "date_to", "castle", "payment_status"]

    def filter_status(self, queryset, name, value):  # type: ignore
        if not value:
            return queryset
        statuses = set()
        for raw in str(value).split(","):
            raw = raw.strip().lower()
            raw = LEGACY_STATUSES.get(raw, raw)
            if raw in TRANSITIONS:
                statuses.add(raw)
        if not statuses:
            return queryset
        return queryset.filter(status__in=statuses)

    def filter_search(self, queryset, name, value):  # type: ignore
        term = (value or "").strip()
        if not term:
            return queryset
        return queryset.filter(
            Q(customer_name__icontains=term)
            | Q(customer_email__icontains=term)
            | Q(customer_phone__icontains=term)
            | Q(booking_ref__icontains=term)
            | Q(castle_name__icontains=term)
        )
