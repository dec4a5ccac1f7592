"""
Event type registry for deserialization.

Persistent stores write ``event_type`` next to the payload and use the
registry to find the class again when reading.

Usage:
    @register_event
    class MessageCreated(LogEvent):
        ...

    event_class = get_event_class("MessageCreated")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import TypeVar

from ragestate.events.base import LogEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=LogEvent)


class EventTypeNotFoundError(KeyError):
    """Raised when an event type is not found in the registry."""

    def __init__(self, event_type: str, available_types: list[str]) -> None:
        self.event_type = event_type
        self.available_types = available_types
        available = ", ".join(sorted(available_types)) if available_types else "none"
        super().__init__(f"Unknown event type: '{event_type}'. Registered types: {available}")


class DuplicateEventTypeError(ValueError):
    """Raised when a different class is registered under an existing event type name."""

    def __init__(
        self,
        event_type: str,
        existing_class: type[LogEvent],
        new_class: type[LogEvent],
    ) -> None:
        self.event_type = event_type
        self.existing_class = existing_class
        self.new_class = new_class
        super().__init__(
            f"Event type '{event_type}' is already registered to "
            f"{existing_class.__module__}.{existing_class.__name__}; cannot register "
            f"{new_class.__module__}.{new_class.__name__}"
        )


class EventRegistry:
    """
    Thread-safe mapping of event type names to event classes.

    Example:
        >>> registry = EventRegistry()
        >>> registry.register(MessageCreated)
        >>> registry.get("MessageCreated")
        <class 'MessageCreated'>
    """

    def __init__(self) -> None:
        self._types: dict[str, type[LogEvent]] = {}
        self._lock = threading.RLock()

    def register(
        self,
        event_class: type[TEvent],
        event_type: str | None = None,
    ) -> type[TEvent]:
        """
        Register an event class.

        Re-registering the same class is a no-op.

        Raises:
            DuplicateEventTypeError: If the name belongs to a different class
        """
        type_name = event_type or event_class.__name__
        with self._lock:
            existing = self._types.get(type_name)
            if existing is not None and existing is not event_class:
                raise DuplicateEventTypeError(type_name, existing, event_class)
            self._types[type_name] = event_class
        logger.debug("Registered event type %s", type_name)
        return event_class

    def get(self, event_type: str) -> type[LogEvent]:
        """
        Get event class by type name.

        Raises:
            EventTypeNotFoundError: If the type is not registered
        """
        with self._lock:
            event_class = self._types.get(event_type)
            if event_class is None:
                raise EventTypeNotFoundError(event_type, list(self._types))
            return event_class

    def get_or_none(self, event_type: str) -> type[LogEvent] | None:
        with self._lock:
            return self._types.get(event_type)

    def list_types(self) -> list[str]:
        with self._lock:
            return sorted(self._types)

    def clear(self) -> None:
        with self._lock:
            self._types.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._types)

    def __contains__(self, event_type: str) -> bool:
        with self._lock:
            return event_type in self._types

    def __iter__(self) -> Iterator[str]:
        return iter(self.list_types())


default_registry = EventRegistry()


def register_event(event_class: type[TEvent]) -> type[TEvent]:
    """Decorator that registers an event class in the default registry."""
    return default_registry.register(event_class)


def get_event_class(event_type: str) -> type[LogEvent]:
    """Get an event class from the default registry."""
    return default_registry.get(event_type)


__all__ = [
    "EventRegistry",
    "EventTypeNotFoundError",
    "DuplicateEventTypeError",
    "default_registry",
    "register_event",
    "get_event_class",
]
