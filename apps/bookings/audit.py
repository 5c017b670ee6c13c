"""Append-only audit trail for bookings.

Every helper goes through ``append``, which inserts exactly one row and
bumps the booking's ``updated_at`` in the same transaction. Errors are
never swallowed here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from django.db import transaction  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Booking, BookingAuditEntry

logger = logging.getLogger(__name__)

Action = BookingAuditEntry.Action
Actor = BookingAuditEntry.Actor


@transaction.atomic
def append(
    booking: Booking,
    action: str,
    actor: str,
    *,
    actor_details: str = "",
    method: str = "",
    details: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: str = "",
) -> BookingAuditEntry:
    entry = BookingAuditEntry.objects.create(
        booking_id=booking.pk,
        booking_ref=booking.booking_ref,
        action=action,
        actor=actor,
        actor_details=actor_details,
        method=method,
        details=details or {},
        ip_address=ip_address or None,
        user_agent=user_agent,
    )
    now = timezone.now()
    # Queryset update skips auto_now, so set the value explicitly.
    Booking.objects.filter(pk=booking.pk).update(updated_at=now)
    booking.updated_at = now
    logger.debug("Audit entry %s appended to booking %s", action, booking.booking_ref)
    return entry


def trail_for(booking_id: int):
    """Entries for a booking in the order they were appended."""

    return BookingAuditEntry.objects.filter(booking_id=booking_id).order_by("id")


def record_booking_created(booking: Booking, actor: str, actor_details: str = "") -> BookingAuditEntry:
    return append(
        booking,
        Action.BOOKING_CREATED,
        actor,
        actor_details=actor_details,
        details={"status": booking.status, "castle_id": booking.castle_id, "date": booking.date.isoformat()},
    )


def record_status_change(
    booking: Booking,
    previous_status: str,
    new_status: str,
    actor: str,
    actor_details: str = "",
    reason: str = "",
) -> BookingAuditEntry:
    details = {"from": previous_status, "to": new_status}
    if reason:
        details["reason"] = reason
    return append(booking, Action.STATUS_CHANGE, actor, actor_details=actor_details, details=details)


def record_manual_confirmation(
    booking: Booking,
    previous_status: str,
    actor_details: str,
    notes: str = "",
) -> BookingAuditEntry:
    details = {"from": previous_status, "to": booking.status}
    if notes:
        details["notes"] = notes
    return append(
        booking,
        Action.MANUAL_CONFIRMATION,
        Actor.ADMIN,
        actor_details=actor_details,
        method="manual",
        details=details,
    )


def record_agreement_signed(
    booking: Booking,
    actor: str,
    signed_by: str,
    method: str,
    ip_address: Optional[str] = None,
    user_agent: str = "",
) -> BookingAuditEntry:
    return append(
        booking,
        Action.AGREEMENT_SIGNED,
        actor,
        actor_details=signed_by,
        method=method,
        ip_address=ip_address,
        user_agent=user_agent,
    )


def record_payment_status_change(
    booking: Booking,
    previous_status: str,
    new_status: str,
    actor_details: str,
    comment: str,
) -> BookingAuditEntry:
    return append(
        booking,
        Action.PAYMENT_STATUS_CHANGE,
        Actor.ADMIN,
        actor_details=actor_details,
        details={"from": previous_status, "to": new_status, "comment": comment},
    )


EMAIL_ACTIONS = {
    "sent": Action.AGREEMENT_EMAIL_SENT,
    "opened": Action.EMAIL_OPENED,
    "clicked": Action.EMAIL_CLICKED,
}


def record_email_event(
    booking: Booking,
    event: str,
    *,
    email_type: str = "agreement",
    actor: Optional[str] = None,
    actor_details: str = "",
    ip_address: Optional[str] = None,
    user_agent: str = "",
    details: Optional[dict[str, Any]] = None,
) -> BookingAuditEntry:
    """Record that an email was sent, opened or clicked.

    Sending is attributed to the system, opens and clicks to the customer.
    """

    action = EMAIL_ACTIONS[event]
    if actor is None:
        actor = Actor.SYSTEM if event == "sent" else Actor.CUSTOMER
    payload = {"email_type": email_type}
    payload.update(details or {})
    return append(
        booking,
        action,
        actor,
        actor_details=actor_details or booking.customer_email,
        method="email",
        details=payload,
        ip_address=ip_address,
        user_agent=user_agent,
    )
