"""Event log stores and live queries."""

from ragestate.stores.in_memory import InMemoryEventLogStore
from ragestate.stores.interface import (
    EventLogStore,
    EventPublisher,
    ReadDirection,
    ReadOptions,
    StoredEvent,
    StreamListener,
    StreamWatchers,
    Unsubscribe,
)
from ragestate.stores.live import LiveQuery, Snapshot
from ragestate.stores.sqlite import SQLiteEventLogStore

__all__ = [
    "EventLogStore",
    "EventPublisher",
    "ReadDirection",
    "ReadOptions",
    "StoredEvent",
    "StreamListener",
    "StreamWatchers",
    "Unsubscribe",
    "InMemoryEventLogStore",
    "SQLiteEventLogStore",
    "LiveQuery",
    "Snapshot",
]
