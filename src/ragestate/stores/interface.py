"""
Event log store interface and core data structures.

The event log is the single source of truth: chat messages, posts, likes
and comments are appended to named streams, and every derived document
(chat summaries, post counters) can be rebuilt from it.

This module provides:
- StoredEvent: A log event plus its server-assigned position and timestamp
- ReadOptions: Configuration for reading a stream
- EventLogStore: Abstract base class for store implementations
- EventPublisher: Protocol for publishing newly stored events to triggers
- StreamWatchers: Change listeners keyed by stream id
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from ragestate.events.base import LogEvent

logger = logging.getLogger(__name__)

StreamListener = Callable[[str], Awaitable[None]]
"""Async callback receiving the id of a stream that changed."""

Unsubscribe = Callable[[], None]


class ReadDirection(Enum):
    """Direction for reading events from a stream."""

    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True)
class StoredEvent:
    """
    A persisted log event with server-assigned metadata.

    Attributes:
        event: The underlying log event
        stream_id: Stream the event was appended to
        stream_position: Position within the stream (1-based)
        global_position: Position across all streams (1-based)
        stored_at: Server timestamp assigned at append time
        annotations: Mutable-after-write fields (moderation flags, deleted_for)
    """

    event: LogEvent
    stream_id: str
    stream_position: int
    global_position: int
    stored_at: datetime
    annotations: dict[str, Any] = field(default_factory=dict)

    @property
    def event_id(self) -> UUID:
        return self.event.event_id

    @property
    def event_type(self) -> str:
        return self.event.event_type

    @property
    def flagged(self) -> bool:
        return bool(self.annotations.get("flagged", False))

    @property
    def deleted_for(self) -> list[str]:
        return list(self.annotations.get("deleted_for", []))

    def __str__(self) -> str:
        return (
            f"StoredEvent({self.event_type}, "
            f"stream_pos={self.stream_position}, "
            f"global_pos={self.global_position})"
        )


@dataclass(frozen=True)
class ReadOptions:
    """
    Options for reading events from the log.

    Cursors are exclusive and refer to stream positions for ``read_stream``
    and to global positions for ``read_all``.

    Attributes:
        direction: Whether to read oldest-first or newest-first
        limit: Maximum number of events to retrieve (None for no limit)
        before_position: Only events strictly before this position
        after_position: Only events strictly after this position
    """

    direction: ReadDirection = ReadDirection.FORWARD
    limit: int | None = None
    before_position: int | None = None
    after_position: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 1:
            raise ValueError(f"limit must be >= 1 when set, got {self.limit}")


def apply_read_options(
    events: list[StoredEvent],
    options: ReadOptions,
    *,
    global_: bool = False,
) -> list[StoredEvent]:
    """Filter, order and cap an oldest-first list of events per ``options``."""

    def position(stored: StoredEvent) -> int:
        return stored.global_position if global_ else stored.stream_position

    selected = [
        e
        for e in events
        if (options.before_position is None or position(e) < options.before_position)
        and (options.after_position is None or position(e) > options.after_position)
    ]
    if options.direction == ReadDirection.BACKWARD:
        selected.reverse()
    if options.limit is not None:
        selected = selected[: options.limit]
    return selected


class EventPublisher(Protocol):
    """
    Protocol for publishing newly stored events to server-side triggers.

    The InMemoryEventBus satisfies this protocol.
    """

    async def publish(self, events: list[LogEvent]) -> None: ...


class StreamWatchers:
    """
    Registry of change listeners keyed by stream id.

    Listener failures are logged and never reach the writer.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[StreamListener]] = defaultdict(list)

    def add(self, stream_id: str, listener: StreamListener) -> Unsubscribe:
        self._listeners[stream_id].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(stream_id, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def count(self, stream_id: str) -> int:
        return len(self._listeners.get(stream_id, []))

    async def notify(self, stream_id: str) -> None:
        listeners = list(self._listeners.get(stream_id, []))
        if not listeners:
            return
        results = await asyncio.gather(
            *(listener(stream_id) for listener in listeners),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "Stream listener failed for %s: %s",
                    stream_id,
                    result,
                    extra={"stream_id": stream_id, "error": str(result)},
                )


class EventLogStore(ABC):
    """
    Abstract base class for event log stores.

    Append is idempotent by ``event_id``: appending an event whose id is
    already stored returns the existing record and triggers nothing.
    After a new event commits, the store notifies stream watchers and then
    hands the event to its publisher, if one is configured.
    """

    @abstractmethod
    async def append(self, event: LogEvent) -> StoredEvent:
        """
        Append an event to its stream.

        Returns:
            The stored record, with server-assigned positions and timestamp
        """
        pass

    @abstractmethod
    async def read_stream(
        self,
        stream_id: str,
        options: ReadOptions | None = None,
    ) -> list[StoredEvent]:
        """Read events from a single stream."""
        pass

    @abstractmethod
    async def read_all(self, options: ReadOptions | None = None) -> list[StoredEvent]:
        """Read events across all streams in global order."""
        pass

    @abstractmethod
    async def get_event(self, event_id: UUID) -> StoredEvent | None:
        """Get a stored event by id, or None."""
        pass

    async def event_exists(self, event_id: UUID) -> bool:
        return await self.get_event(event_id) is not None

    @abstractmethod
    async def get_stream_position(self, stream_id: str) -> int:
        """Position of the newest event in a stream (0 if empty)."""
        pass

    @abstractmethod
    async def get_global_position(self) -> int:
        """Position of the newest event across all streams (0 if empty)."""
        pass

    @abstractmethod
    async def annotate(self, event_id: UUID, **fields: Any) -> StoredEvent:
        """
        Set annotation fields on a stored event.

        Raises:
            EventNotFoundError: If no event has this id
        """
        pass

    @abstractmethod
    async def annotate_union(
        self,
        event_id: UUID,
        field_name: str,
        values: list[str],
    ) -> StoredEvent:
        """
        Add values to a list annotation, skipping ones already present.

        Raises:
            EventNotFoundError: If no event has this id
        """
        pass

    @abstractmethod
    def watch(self, stream_id: str, listener: StreamListener) -> Unsubscribe:
        """Register a listener called after every change to ``stream_id``."""
        pass


__all__ = [
    "ReadDirection",
    "StoredEvent",
    "ReadOptions",
    "apply_read_options",
    "EventPublisher",
    "EventLogStore",
    "StreamWatchers",
    "StreamListener",
    "Unsubscribe",
]
