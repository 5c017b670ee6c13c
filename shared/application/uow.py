"""
Unit of Work Pattern

Wraps a database transaction and makes sure domain events are published
only after the transaction commits successfully.
"""

from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class DjangoUnitOfWork:
    """
    Django implementation of Unit of Work

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = Booking.objects.select_for_update().get(pk=booking_id)
            ...
            uow.add_event(BookingStatusChanged(...))
            # Transaction commits here
        # Events are published after commit

    Nested use (inside an outer ``atomic`` block) opens a savepoint; the
    events are then published when the outermost transaction commits.
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._transaction = None

    def __enter__(self):
        """Start database transaction"""
        self._transaction = transaction.atomic()
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._transaction:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)

    def add_event(self, event: DomainEvent):
        self._events.append(event)

    def commit(self):
        """
        Schedule publishing of the collected events

        Events are published using Django's transaction.on_commit()
        to ensure they're only sent after database commit succeeds.
        """
        logger.debug("Committing unit of work with %d events", len(self._events))

        events = self._events.copy()
        self._events.clear()

        if events:
            transaction.on_commit(lambda: self._publish_events(events))

    def rollback(self):
        """Discard events of a failed unit of work"""
        if self._events:
            logger.warning("Rolling back unit of work, discarding %d events", len(self._events))
        self._events.clear()

    def _publish_events(self, events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        logger.info("Publishing %d domain events after commit", len(events))

        try:
            message_bus.publish_events(events)
        except Exception:
            # The database changes are already committed at this point
            logger.exception("Error publishing events")
