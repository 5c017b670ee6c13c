"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class BookingCreated(DomainEvent):
    """
    Event: A new booking was created

    Triggers:
    - Send the booking acknowledgement email
    - Mirror confirmed bookings into the external calendar
    """
    booking_ref: str
    castle_id: Optional[int]
    date: date
    status: str
    total_price: Decimal


@dataclass(kw_only=True)
class BookingStatusChanged(DomainEvent):
    """
    Event: Booking status moved along the status machine

    Triggers:
    - Create, update or remove the calendar event
    - Send confirmation or expiry emails
    """
    booking_ref: str
    previous_status: str
    new_status: str
    actor: str


@dataclass(kw_only=True)
class AgreementSigned(DomainEvent):
    """Event: The hire agreement was signed (by the customer or on their behalf)"""
    booking_ref: str
    signed_by: str
    method: str


@dataclass(kw_only=True)
class PaymentStatusChanged(DomainEvent):
    booking_ref: str
    previous_status: str
    new_status: str


@dataclass(kw_only=True)
class BookingDeleted(DomainEvent):
    """
    Event: Booking was hard-deleted

    Triggers:
    - Remove the mirrored calendar event (if any)
    """
    booking_ref: str
    calendar_event_id: str = ""
