"""Accounting export: one CSV row per booking with payment and agreement columns."""

from __future__ import annotations

import csv
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Any, Mapping, Optional

from django.utils import timezone  # type: ignore

from shared.application.retry import READ_RETRY, guarded

from .domain.status import BookingStatus
from .models import Booking
from .queries import filtered_bookings

ACCOUNTING_HEADERS = [
    "Booking Reference",
    "Customer Name",
    "Customer Email",
    "Customer Phone",
    "Castle Name",
    "Event Date",
    "Event Duration (hours)",
    "Booking Status",
    "Payment Method",
    "Payment Status",
    "Accounting Status",
    "Revenue Status",
    "Total Price (£)",
    "Deposit Required (£)",
    "Amount Paid (£)",
    "Outstanding Balance (£)",
    "Payment Date",
    "Admin Payment Notes",
    "Booking Created",
    "Agreement Signed",
    "Agreement Date",
    "Notes",
]

ACCOUNTING_STATUS_LABELS = {
    Booking.PaymentStatus.PAID_FULL: "Paid in Full",
    Booking.PaymentStatus.DEPOSIT_PAID: "Deposit Paid",
    Booking.PaymentStatus.PENDING: "Payment Pending",
}


def amount_paid(booking: Booking) -> Decimal:
    if booking.payment_status == Booking.PaymentStatus.PAID_FULL:
        return booking.total_price
    if booking.payment_status == Booking.PaymentStatus.DEPOSIT_PAID:
        return booking.deposit
    return Decimal("0.00")


def accounting_status(booking: Booking) -> str:
    if booking.status == BookingStatus.EXPIRED:
        return "Cancelled"
    return ACCOUNTING_STATUS_LABELS.get(booking.payment_status, "Unknown")


def revenue_status(booking: Booking, today: date) -> str:
    """Revenue is recognised once a completed event has taken place."""
    if booking.status == BookingStatus.EXPIRED:
        return "No Revenue"
    if booking.date < today:
        return "Revenue Recognized" if booking.status == BookingStatus.COMPLETED else "Service Delivered"
    return "Deferred Revenue"


def _money(value: Decimal) -> str:
    return f"{Decimal(value).quantize(Decimal('0.01'))}"


def _local(moment, fmt: str) -> str:
    return timezone.localtime(moment).strftime(fmt) if moment else ""


def accounting_row(booking: Booking, today: date) -> list:
    paid = amount_paid(booking)
    return [
        booking.booking_ref,
        booking.customer_name,
        booking.customer_email,
        booking.customer_phone,
        booking.castle_name,
        booking.date.strftime("%d/%m/%Y"),
        booking.duration_hours,
        booking.status,
        booking.payment_method,
        booking.payment_status,
        accounting_status(booking),
        revenue_status(booking, today),
        _money(booking.total_price),
        _money(booking.deposit),
        _money(paid),
        _money(booking.total_price - paid),
        _local(booking.payment_date, "%d/%m/%Y"),
        booking.admin_payment_comment,
        _local(booking.created_at, "%d/%m/%Y %H:%M"),
        "Yes" if booking.agreement_signed else "No",
        _local(booking.agreement_signed_at, "%d/%m/%Y %H:%M"),
        booking.notes,
    ]


def export_accounting_csv(filters: Optional[Mapping[str, Any]] = None, today: Optional[date] = None) -> str:
    """Render the filtered bookings, oldest event first, as CSV text."""

    today = today or timezone.localdate()
    queryset = filtered_bookings(filters).order_by("date", "id")

    def run(attempt: int) -> str:
        buffer = StringIO()
        writer = csv.writer(buffer)
        writer.writerow(ACCOUNTING_HEADERS)
        for booking in queryset:
            writer.writerow(accounting_row(booking, today))
        return buffer.getvalue()

    return guarded(READ_RETRY, run, target="accounting_export")
