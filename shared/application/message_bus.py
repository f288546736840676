"""
Message Bus

Routes domain events to the handlers subscribed to them. Publishing is
best effort: a failing handler is logged and the remaining handlers
still run, so side effects such as notifications never undo a committed
state change.
"""

from typing import Callable, Dict, Iterable, List, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class MessageBus:
    """
    Event bus with 1:N routing

    Handlers are matched on the exact event class.
    """

    def __init__(self):
        self._event_handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        """Register a handler; registering the same handler twice is a no-op"""
        handlers = self._event_handlers.setdefault(event_type, [])
        if handler in handlers:
            return
        handlers.append(handler)
        logger.debug(f"Registered event handler {handler.__name__} for {event_type.__name__}")

    def subscribe(self, *event_types: Type[DomainEvent]) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of register_event_handler"""

        def decorator(handler: EventHandler) -> EventHandler:
            for event_type in event_types:
                self.register_event_handler(event_type, handler)
            return handler

        return decorator

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[EventHandler]:
        return list(self._event_handlers.get(event_type, []))

    def publish_events(self, events: Iterable[DomainEvent]):
        """
        Publish domain events

        Errors in handlers are logged but don't stop other handlers.
        """
        for event in events:
            handlers = self.handlers_for(type(event))

            if not handlers:
                logger.debug(f"No handlers registered for event {event.event_type}")
                continue

            logger.info(f"Publishing event: {event.event_type} (ID: {event.event_id})")

            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        f"Error in event handler {handler.__name__} "
                        f"for event {event.event_type}: {e}",
                        exc_info=True
                    )


# Global message bus instance
message_bus = MessageBus()
