"""
Live queries over an event log stream.

A LiveQuery keeps a "newest N events" window of a stream current: it
delivers an initial snapshot on start and a fresh one after every change
the store reports for that stream, until it is unsubscribed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ragestate.stores.interface import (
    EventLogStore,
    ReadDirection,
    ReadOptions,
    StoredEvent,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """
    Result of one live query evaluation.

    Attributes:
        events: Newest-first events in the window
        cursor: Stream position of the oldest event in the window, used to
            page further back; None when the window is empty
    """

    events: list[StoredEvent]
    cursor: int | None

    @property
    def size(self) -> int:
        return len(self.events)


class LiveQuery:
    """
    Descending, limited subscription to one stream.

    Example:
        >>> query = LiveQuery(store, chat_stream(chat_id), limit=50, on_snapshot=render)
        >>> await query.start()
        >>> ...
        >>> query.unsubscribe()
    """

    def __init__(
        self,
        store: EventLogStore,
        stream_id: str,
        *,
        limit: int,
        on_snapshot: Callable[[Snapshot], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._store = store
        self._stream_id = stream_id
        self._limit = limit
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._unsubscribe: Unsubscribe | None = None
        self._active = False

    @property
    def stream_id(self) -> str:
        return self._stream_id

    @property
    def active(self) -> bool:
        return self._active

    async def start(self) -> None:
        """Deliver the initial snapshot and begin listening for changes."""
        if self._active:
            return
        self._active = True
        self._unsubscribe = self._store.watch(self._stream_id, self._on_change)
        await self._evaluate()

    def unsubscribe(self) -> None:
        """Stop listening. No snapshot is delivered after this returns."""
        self._active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_change(self, stream_id: str) -> None:
        await self._evaluate()

    async def _evaluate(self) -> None:
        try:
            events = await self._store.read_stream(
                self._stream_id,
                ReadOptions(direction=ReadDirection.BACKWARD, limit=self._limit),
            )
        except Exception as e:
            logger.error(
                "Live query on %s failed: %s",
                self._stream_id,
                e,
                exc_info=True,
                extra={"stream_id": self._stream_id},
            )
            if self._active and self._on_error is not None:
                self._on_error(e)
            return

        if not self._active:
            return
        cursor = events[-1].stream_position if events else None
        self._on_snapshot(Snapshot(events=events, cursor=cursor))


__all__ = ["LiveQuery", "Snapshot"]
