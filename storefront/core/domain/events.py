"""
Base Domain Event Classes for Domain-Driven Design

Domain Events represent significant business occurrences that domain experts
care about. They are used to communicate between aggregates and bounded contexts.
"""

import logging
from abc import ABC
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, ClassVar, Coroutine
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent(ABC):
    """
    Base class for all domain events.

    Domain events are immutable records of something that happened
    in the domain. They capture the fact that something occurred.

    Subclasses set ``event_name`` to the dotted name subscribers listen on.

    Example:
        ```python
        @dataclass(frozen=True)
        class OrderCreated(DomainEvent):
            event_name: ClassVar[str] = "order.created"

            order_id: str = ""
            total_amount: Decimal = Decimal("0")
        ```
    """

    event_name: ClassVar[str] = "domain.event"

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: int = field(default=1)

    @property
    def event_type(self) -> str:
        """Get the event type name (class name)."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization."""
        result: dict[str, Any] = {
            "event_id": str(self.event_id),
            "event_name": self.event_name,
            "event_type": self.event_type,
            "occurred_at": self.occurred_at.isoformat(),
            "version": self.version,
        }
        for key, value in self.__dict__.items():
            if key in result:
                continue
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, (UUID, Decimal)):
                result[key] = str(value)
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result


# Type aliases for event handlers
EventHandler = Callable[[DomainEvent], Coroutine[Any, Any, None]]


class DomainEventPublisher:
    """
    In-process domain event publisher.

    Handlers subscribe by event name (``"order.created"``) or with ``"*"``
    to receive everything. A failing handler is logged and never
    propagates into the operation that published the event.
    """

    WILDCARD = "*"

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """
        Subscribe to an event name.

        Args:
            event_name: Dotted event name or "*" for all events
            handler: Async handler function
        """
        self._handlers.setdefault(event_name, []).append(handler)

    async def publish(self, event: DomainEvent) -> None:
        """
        Publish a domain event to all subscribers.

        Args:
            event: Event to publish
        """
        handlers = self._handlers.get(event.event_name, []) + self._handlers.get(self.WILDCARD, [])
        logger.debug(f"Publishing {event.event_name} to {len(handlers)} handler(s)")

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                # Log error but don't fail other handlers
                logger.error(f"Error in event handler for {event.event_name}: {e}", exc_info=True)

    async def publish_all(self, events: list[DomainEvent]) -> None:
        """
        Publish multiple events.

        Args:
            events: List of events to publish
        """
        for event in events:
            await self.publish(event)

    def clear_handlers(self) -> None:
        """Clear all event handlers (useful for testing)."""
        self._handlers.clear()
