"""
Booking Event Handlers

Subscribers for booking domain events. The calendar mirror and the email
sender hook in here; in this service they record what would be sent.
"""

import logging

from shared.application.message_bus import message_bus
from apps.bookings.domain.events import (
    AgreementSigned,
    BookingCreated,
    BookingDeleted,
    BookingStatusChanged,
    PaymentStatusChanged,
)

logger = logging.getLogger(__name__)


def log_booking_event(event):
    logger.info("Booking event %s", event.__class__.__name__, extra={"booking_event": event.to_dict()})


def flag_calendar_sync(event: BookingStatusChanged):
    """Confirmed bookings are mirrored to the calendar; expired ones are removed."""
    if event.new_status == "confirmed":
        logger.info("Calendar event required for booking %s", event.booking_ref)
    elif event.new_status == "expired":
        logger.info("Calendar event for booking %s should be removed", event.booking_ref)


def flag_calendar_removal(event: BookingDeleted):
    if event.calendar_event_id:
        logger.info(
            "Calendar event %s for deleted booking %s should be removed",
            event.calendar_event_id,
            event.booking_ref,
        )


def register_handlers():
    for event_type in (
        BookingCreated,
        BookingStatusChanged,
        AgreementSigned,
        PaymentStatusChanged,
        BookingDeleted,
    ):
        message_bus.register_event_handler(event_type, log_booking_event)
    message_bus.register_event_handler(BookingStatusChanged, flag_calendar_sync)
    message_bus.register_event_handler(BookingDeleted, flag_calendar_removal)
