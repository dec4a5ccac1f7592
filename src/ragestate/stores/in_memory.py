"""
In-memory event log store implementation.

Useful for testing and development. Not suitable for production
as all events are lost when the process terminates.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from ragestate.events.base import LogEvent
from ragestate.exceptions import EventNotFoundError
from ragestate.observability import (
    ATTR_EVENT_ID,
    ATTR_EVENT_TYPE,
    ATTR_LIMIT,
    ATTR_POSITION,
    ATTR_STREAM_ID,
    Tracer,
    create_tracer,
)
from ragestate.stores.interface import (
    EventLogStore,
    EventPublisher,
    ReadOptions,
    StoredEvent,
    StreamListener,
    StreamWatchers,
    Unsubscribe,
    apply_read_options,
)

logger = logging.getLogger(__name__)


class InMemoryEventLogStore(EventLogStore):
    """
    In-memory implementation of the event log store.

    Thread-safety:
        Uses an asyncio.Lock. Safe for concurrent async operations within a
        single process.

    Example:
        >>> store = InMemoryEventLogStore(publisher=bus)
        >>> stored = await store.append(MessageCreated(chat_id="dm_a_b", sender_id="a", text="hi"))
        >>> stored.stream_position
        1

    Attributes:
        _streams: Stream id to its events, oldest first
        _by_id: Event id to its current stored record
        _global_position: Counter for global position
    """

    def __init__(
        self,
        *,
        publisher: EventPublisher | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize an empty in-memory event log.

        Args:
            publisher: Receives each newly stored event (e.g. an InMemoryEventBus)
            tracer: Optional custom Tracer instance
            enable_tracing: Emit OpenTelemetry spans (ignored if tracer is provided)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._publisher = publisher
        self._watchers = StreamWatchers()

        self._streams: dict[str, list[UUID]] = defaultdict(list)
        self._by_id: dict[UUID, StoredEvent] = {}
        self._global_position: int = 0
        self._lock: asyncio.Lock = asyncio.Lock()

    async def append(self, event: LogEvent) -> StoredEvent:
        with self._tracer.span(
            "ragestate.event_log.append",
            {
                ATTR_EVENT_ID: str(event.event_id),
                ATTR_EVENT_TYPE: event.event_type,
                ATTR_STREAM_ID: event.stream_id,
            },
        ):
            async with self._lock:
                existing = self._by_id.get(event.event_id)
                if existing is not None:
                    logger.debug(
                        "Event %s already stored, skipping append",
                        event.event_id,
                        extra={"event_id": str(event.event_id), "stream_id": event.stream_id},
                    )
                    return existing

                self._global_position += 1
                stream = self._streams[event.stream_id]
                stored = StoredEvent(
                    event=event,
                    stream_id=event.stream_id,
                    stream_position=len(stream) + 1,
                    global_position=self._global_position,
                    stored_at=datetime.now(UTC),
                )
                stream.append(event.event_id)
                self._by_id[event.event_id] = stored

            await self._watchers.notify(stored.stream_id)
            if self._publisher is not None:
                await self._publisher.publish([event])
            return stored

    async def read_stream(
        self,
        stream_id: str,
        options: ReadOptions | None = None,
    ) -> list[StoredEvent]:
        options = options or ReadOptions()
        with self._tracer.span(
            "ragestate.event_log.read_stream",
            {
                ATTR_STREAM_ID: stream_id,
                ATTR_LIMIT: options.limit or 0,
                ATTR_POSITION: options.before_position or 0,
            },
        ):
            async with self._lock:
                events = [self._by_id[event_id] for event_id in self._streams.get(stream_id, [])]
            return apply_read_options(events, options)

    async def read_all(self, options: ReadOptions | None = None) -> list[StoredEvent]:
        options = options or ReadOptions()
        with self._tracer.span("ragestate.event_log.read_all", {ATTR_LIMIT: options.limit or 0}):
            async with self._lock:
                events = sorted(self._by_id.values(), key=lambda e: e.global_position)
            return apply_read_options(events, options, global_=True)

    async def get_event(self, event_id: UUID) -> StoredEvent | None:
        async with self._lock:
            return self._by_id.get(event_id)

    async def get_stream_position(self, stream_id: str) -> int:
        async with self._lock:
            return len(self._streams.get(stream_id, []))

    async def get_global_position(self) -> int:
        async with self._lock:
            return self._global_position

    async def annotate(self, event_id: UUID, **fields: Any) -> StoredEvent:
        with self._tracer.span("ragestate.event_log.annotate", {ATTR_EVENT_ID: str(event_id)}):
            async with self._lock:
                stored = self._require(event_id)
                updated = replace(stored, annotations={**stored.annotations, **fields})
                self._by_id[event_id] = updated
            await self._watchers.notify(updated.stream_id)
            return updated

    async def annotate_union(
        self,
        event_id: UUID,
        field_name: str,
        values: list[str],
    ) -> StoredEvent:
        with self._tracer.span(
            "ragestate.event_log.annotate_union",
            {ATTR_EVENT_ID: str(event_id)},
        ):
            async with self._lock:
                stored = self._require(event_id)
                current = list(stored.annotations.get(field_name, []))
                merged = current + [v for v in values if v not in current]
                updated = replace(
                    stored,
                    annotations={**stored.annotations, field_name: merged},
                )
                self._by_id[event_id] = updated
            await self._watchers.notify(updated.stream_id)
            return updated

    def watch(self, stream_id: str, listener: StreamListener) -> Unsubscribe:
        return self._watchers.add(stream_id, listener)

    def _require(self, event_id: UUID) -> StoredEvent:
        stored = self._by_id.get(event_id)
        if stored is None:
            raise EventNotFoundError(event_id)
        return stored

    # Test helpers

    async def clear(self) -> None:
        """Remove all events. Watchers stay registered."""
        async with self._lock:
            self._streams.clear()
            self._by_id.clear()
            self._global_position = 0

    @property
    def event_count(self) -> int:
        return len(self._by_id)

    def watcher_count(self, stream_id: str) -> int:
        """Number of live listeners on a stream."""
        return self._watchers.count(stream_id)

    def __repr__(self) -> str:
        return f"InMemoryEventLogStore(events={len(self._by_id)}, position={self._global_position})"


__all__ = ["InMemoryEventLogStore"]
