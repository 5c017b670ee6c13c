"""
Message Bus

Routes domain events to their handlers. The calendar mirror and email
layers subscribe here; the booking core never calls them directly.
"""

from typing import Callable, Dict, List, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class MessageBus:
    """
    Event bus

    Events: multiple handlers per event type (1:N)
    """

    def __init__(self):
        self._event_handlers: Dict[Type[DomainEvent], List[Callable]] = {}

    def register_event_handler(
        self,
        event_type: Type[DomainEvent],
        handler: Callable[[DomainEvent], None]
    ):
        """
        Register an event handler

        Registering the same handler twice for one event type is a no-op.
        """
        handlers = self._event_handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug("Registered event handler for %s", event_type.__name__)

    def clear(self):
        self._event_handlers.clear()

    def publish_events(self, events: List[DomainEvent]):
        """
        Publish domain events

        All registered handlers for each event type will be called.
        Errors in handlers are logged but don't stop other handlers.
        """
        for event in events:
            event_type = type(event)
            handlers = self._event_handlers.get(event_type, [])

            if not handlers:
                logger.debug("No handlers registered for event %s", event_type.__name__)
                continue

            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "Error in event handler %s for event %s",
                        getattr(handler, "__name__", repr(handler)),
                        event_type.__name__,
                    )
                    # Don't raise - other handlers should still run


# Global message bus instance
message_bus = MessageBus()
