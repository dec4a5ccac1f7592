"""
SQLite event log store implementation.

Lightweight persistent log using SQLite with async support via aiosqlite.
Global positions come from the table's rowid; stream positions are assigned
inside the same transaction as the insert.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import aiosqlite

from ragestate.events.base import LogEvent
from ragestate.events.registry import EventRegistry, default_registry
from ragestate.exceptions import EventNotFoundError, SerializationError
from ragestate.observability import (
    ATTR_DB_SYSTEM,
    ATTR_EVENT_ID,
    ATTR_EVENT_TYPE,
    ATTR_LIMIT,
    ATTR_STREAM_ID,
    Tracer,
    create_tracer,
)
from ragestate.serialization import json_dumps, json_loads
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

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS event_log (
    global_position INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL UNIQUE,
    event_type TEXT NOT NULL,
    stream_id TEXT NOT NULL,
    stream_position INTEGER NOT NULL,
    actor_id TEXT,
    stored_at TEXT NOT NULL,
    payload TEXT NOT NULL,
    annotations TEXT NOT NULL DEFAULT '{}',
    UNIQUE (stream_id, stream_position)
);
CREATE INDEX IF NOT EXISTS idx_event_log_stream ON event_log (stream_id, stream_position);
"""

_COLUMNS = (
    "global_position, event_id, event_type, stream_id, stream_position, stored_at, "
    "payload, annotations"
)


class SQLiteEventLogStore(EventLogStore):
    """
    SQLite-backed event log store.

    Example:
        >>> async with SQLiteEventLogStore(":memory:") as store:
        ...     await store.initialize()
        ...     await store.append(PostCreated(user_id="u1", content="hello"))

    Attributes:
        _connection: The aiosqlite connection (set after connect/initialize)
    """

    def __init__(
        self,
        database: str,
        event_registry: EventRegistry | None = None,
        *,
        publisher: EventPublisher | None = None,
        wal_mode: bool = True,
        busy_timeout: int = 5000,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the SQLite event log store.

        Args:
            database: Path to SQLite database file or ':memory:'
            event_registry: Registry used to deserialize rows (defaults to module registry)
            publisher: Receives each newly stored event
            wal_mode: Enable WAL mode for better concurrency (default: True)
            busy_timeout: Milliseconds to wait when the database is locked
            tracer: Optional custom Tracer instance
            enable_tracing: Emit OpenTelemetry spans (ignored if tracer is provided)
        """
        self._database = database
        self._event_registry = event_registry or default_registry
        self._publisher = publisher
        self._wal_mode = wal_mode
        self._busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None
        self._watchers = StreamWatchers()
        self._write_lock = asyncio.Lock()

        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def __aenter__(self) -> SQLiteEventLogStore:
        await self._connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def _connect(self) -> None:
        if self._connection is not None:
            return

        self._connection = await aiosqlite.connect(self._database)
        await self._connection.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")
        if self._wal_mode:
            await self._connection.execute("PRAGMA journal_mode = WAL")
        self._connection.row_factory = aiosqlite.Row

        logger.debug(
            "Connected to SQLite database: %s (wal_mode=%s, busy_timeout=%d)",
            self._database,
            self._wal_mode,
            self._busy_timeout,
        )

    async def close(self) -> None:
        """Close the database connection. Safe to call multiple times."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed SQLite database connection: %s", self._database)

    async def initialize(self) -> None:
        """Create the event_log table if it doesn't exist. Idempotent."""
        if self._connection is None:
            await self._connect()
        assert self._connection is not None

        await self._connection.executescript(SCHEMA)
        await self._connection.commit()
        logger.info("Initialized SQLite event log schema: %s", self._database)

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError(
                "Not connected to database. Use 'async with store:' or call 'initialize()' first."
            )
        return self._connection

    async def append(self, event: LogEvent) -> StoredEvent:
        with self._tracer.span(
            "ragestate.event_log.append",
            {
                ATTR_EVENT_ID: str(event.event_id),
                ATTR_EVENT_TYPE: event.event_type,
                ATTR_STREAM_ID: event.stream_id,
                ATTR_DB_SYSTEM: "sqlite",
            },
        ):
            conn = self._ensure_connected()
            async with self._write_lock:
                existing = await self._fetch_by_id(conn, event.event_id)
                if existing is not None:
                    logger.debug("Event %s already exists, skipping", event.event_id)
                    return existing

                try:
                    cursor = await conn.execute(
                        "SELECT COALESCE(MAX(stream_position), 0) FROM event_log WHERE stream_id = ?",
                        (event.stream_id,),
                    )
                    row = await cursor.fetchone()
                    stream_position = (row[0] if row else 0) + 1
                    stored_at = datetime.now(UTC)

                    cursor = await conn.execute(
                        """
                        INSERT INTO event_log (
                            event_id, event_type, stream_id, stream_position,
                            actor_id, stored_at, payload
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            str(event.event_id),
                            event.event_type,
                            event.stream_id,
                            stream_position,
                            event.actor_id,
                            stored_at.isoformat(),
                            json_dumps(event.to_dict()),
                        ),
                    )
                    global_position = cursor.lastrowid or 0
                    await conn.commit()
                except aiosqlite.Error:
                    await conn.rollback()
                    raise

            stored = StoredEvent(
                event=event,
                stream_id=event.stream_id,
                stream_position=stream_position,
                global_position=global_position,
                stored_at=stored_at,
            )
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
            {ATTR_STREAM_ID: stream_id, ATTR_LIMIT: options.limit or 0, ATTR_DB_SYSTEM: "sqlite"},
        ):
            query = f"SELECT {_COLUMNS} FROM event_log WHERE stream_id = ?"
            params: list[Any] = [stream_id]
            return await self._select(query, params, "stream_position", options)

    async def read_all(self, options: ReadOptions | None = None) -> list[StoredEvent]:
        options = options or ReadOptions()
        with self._tracer.span(
            "ragestate.event_log.read_all",
            {ATTR_LIMIT: options.limit or 0, ATTR_DB_SYSTEM: "sqlite"},
        ):
            query = f"SELECT {_COLUMNS} FROM event_log WHERE 1 = 1"
            return await self._select(query, [], "global_position", options)

    async def _select(
        self,
        query: str,
        params: list[Any],
        position_column: str,
        options: ReadOptions,
    ) -> list[StoredEvent]:
        conn = self._ensure_connected()
        if options.before_position is not None:
            query += f" AND {position_column} < ?"
            params.append(options.before_position)
        if options.after_position is not None:
            query += f" AND {position_column} > ?"
            params.append(options.after_position)
        order = "DESC" if options.direction == ReadDirection.BACKWARD else "ASC"
        query += f" ORDER BY {position_column} {order}"
        if options.limit is not None:
            query += " LIMIT ?"
            params.append(options.limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_stored_event(row) for row in rows]

    async def get_event(self, event_id: UUID) -> StoredEvent | None:
        return await self._fetch_by_id(self._ensure_connected(), event_id)

    async def _fetch_by_id(self, conn: aiosqlite.Connection, event_id: UUID) -> StoredEvent | None:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM event_log WHERE event_id = ?",
            (str(event_id),),
        )
        row = await cursor.fetchone()
        return self._row_to_stored_event(row) if row else None

    async def get_stream_position(self, stream_id: str) -> int:
        conn = self._ensure_connected()
        cursor = await conn.execute(
            "SELECT COALESCE(MAX(stream_position), 0) FROM event_log WHERE stream_id = ?",
            (stream_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_global_position(self) -> int:
        conn = self._ensure_connected()
        cursor = await conn.execute("SELECT COALESCE(MAX(global_position), 0) FROM event_log")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def annotate(self, event_id: UUID, **fields: Any) -> StoredEvent:
        with self._tracer.span(
            "ragestate.event_log.annotate",
            {ATTR_EVENT_ID: str(event_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            return await self._update_annotations(event_id, lambda current: {**current, **fields})

    async def annotate_union(
        self,
        event_id: UUID,
        field_name: str,
        values: list[str],
    ) -> StoredEvent:
        def merge(current: dict[str, Any]) -> dict[str, Any]:
            existing = list(current.get(field_name, []))
            return {**current, field_name: existing + [v for v in values if v not in existing]}

        with self._tracer.span(
            "ragestate.event_log.annotate_union",
            {ATTR_EVENT_ID: str(event_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            return await self._update_annotations(event_id, merge)

    async def _update_annotations(
        self,
        event_id: UUID,
        merge: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> StoredEvent:
        conn = self._ensure_connected()
        async with self._write_lock:
            stored = await self._fetch_by_id(conn, event_id)
            if stored is None:
                raise EventNotFoundError(event_id)
            annotations = merge(dict(stored.annotations))
            await conn.execute(
                "UPDATE event_log SET annotations = ? WHERE event_id = ?",
                (json_dumps(annotations), str(event_id)),
            )
            await conn.commit()
            updated = await self._fetch_by_id(conn, event_id)
        assert updated is not None
        await self._watchers.notify(updated.stream_id)
        return updated

    def watch(self, stream_id: str, listener: StreamListener) -> Unsubscribe:
        return self._watchers.add(stream_id, listener)

    def _row_to_stored_event(self, row: aiosqlite.Row) -> StoredEvent:
        event_type = row["event_type"]
        try:
            event_class = self._event_registry.get(event_type)
            event = event_class.model_validate(json_loads(row["payload"]))
        except (KeyError, ValueError) as e:
            raise SerializationError(event_type, str(e)) from e

        return StoredEvent(
            event=event,
            stream_id=row["stream_id"],
            stream_position=row["stream_position"],
            global_position=row["global_position"],
            stored_at=datetime.fromisoformat(row["stored_at"]),
            annotations=json_loads(row["annotations"]),
        )

    @property
    def database(self) -> str:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._connection is not None


__all__ = ["SQLiteEventLogStore", "SCHEMA"]
