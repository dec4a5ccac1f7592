"""Event bus interface definitions.

The event bus is the trigger surface of the event log: stores publish each
newly committed event to it, and projectors subscribe to the event types
they maintain read models for.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from ragestate.events.base import LogEvent

# Type alias for simple function-based handlers
EventHandlerFunc = Callable[[LogEvent], Awaitable[None] | None]


class EventSubscriber(Protocol):
    """An object that declares its event types and handles them."""

    def subscribed_to(self) -> list[type[LogEvent]]: ...

    async def handle(self, event: LogEvent) -> Any: ...


class EventBus(ABC):
    """
    Abstract event bus for publishing and subscribing to log events.

    Tracing follows the package convention: implementations take
    ``tracer``/``enable_tracing`` and emit ``ragestate.event_bus.dispatch``
    and ``ragestate.event_bus.handle`` spans.

    Example:
        >>> bus = InMemoryEventBus()
        >>> bus.subscribe_all(chat_summary_projector)
        >>> store = InMemoryEventLogStore(publisher=bus)
    """

    @abstractmethod
    async def publish(
        self,
        events: list[LogEvent],
        background: bool = False,
    ) -> None:
        """
        Publish events to all registered subscribers.

        Events are processed in order; every handler for an event runs
        before the next event is dispatched. Handler errors are logged and
        never stop other handlers.

        Args:
            events: List of events to publish
            background: If True, dispatch without waiting (fire-and-forget)
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        event_type: type[LogEvent],
        handler: Any,
    ) -> None:
        """
        Subscribe a handler to a specific event type.

        Args:
            event_type: The event class to subscribe to
            handler: Object with handle() method or callable
        """
        pass

    @abstractmethod
    def unsubscribe(
        self,
        event_type: type[LogEvent],
        handler: Any,
    ) -> bool:
        """
        Unsubscribe a handler from a specific event type.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        pass

    @abstractmethod
    def subscribe_all(self, subscriber: EventSubscriber) -> None:
        """Subscribe a subscriber to every event type it declares."""
        pass

    @abstractmethod
    def subscribe_to_all_events(self, handler: Any) -> None:
        """Subscribe a handler to every event type (wildcard)."""
        pass

    @abstractmethod
    def unsubscribe_from_all_events(self, handler: Any) -> bool:
        """Remove a wildcard handler. Returns True if it was registered."""
        pass


__all__ = [
    "EventBus",
    "EventHandlerFunc",
    "EventSubscriber",
]
