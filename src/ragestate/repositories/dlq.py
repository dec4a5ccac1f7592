"""
Dead letter queue for fan-out jobs that failed after all retries.

An entry keeps enough of the failed job to investigate or replay it: the
serialized job payload, the error, and how many attempts were made.
"""

import asyncio
import traceback
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_ERROR_TYPE,
    ATTR_EVENT_ID,
    ATTR_EVENT_TYPE,
    ATTR_PROJECTION_NAME,
    ATTR_RETRY_COUNT,
)
from ragestate.serialization import json_dumps


@dataclass
class DLQEntry:
    """
    A dead letter queue entry.

    Attributes:
        id: DLQ entry identifier
        event_id: Identifier of the failed unit of work (a fan-out job id)
        projection_name: Name of the projector that failed
        event_type: Type of the log event behind the work
        event_data: Serialized job payload (JSON string)
        error_message: Error message from the last failure
        error_stacktrace: Formatted traceback of the last failure
        retry_count: Number of attempts made
        first_failed_at: When the work first landed in the DLQ
        last_failed_at: When it most recently failed
        status: failed, retrying or resolved
        resolved_at: When the entry was resolved
        resolved_by: Who resolved the entry
    """

    id: int
    event_id: UUID
    projection_name: str
    event_type: str
    event_data: str
    error_message: str
    error_stacktrace: str | None = None
    retry_count: int = 0
    first_failed_at: datetime | None = None
    last_failed_at: datetime | None = None
    status: str = "failed"
    resolved_at: datetime | None = None
    resolved_by: str | None = None


@dataclass(frozen=True)
class DLQStats:
    total_failed: int = 0
    total_retrying: int = 0
    affected_projections: int = 0
    oldest_failure: str | None = None


@runtime_checkable
class DLQRepository(Protocol):
    async def add_failed_event(
        self,
        event_id: UUID,
        projection_name: str,
        event_type: str,
        event_data: dict[str, Any],
        error: Exception,
        retry_count: int = 0,
    ) -> None: ...

    async def get_failed_events(
        self,
        projection_name: str | None = None,
        status: str = "failed",
        limit: int = 100,
    ) -> list[DLQEntry]: ...

    async def mark_resolved(self, dlq_id: int, resolved_by: str) -> None: ...

    async def get_failure_stats(self) -> DLQStats: ...


class InMemoryDLQRepository:
    """
    In-memory DLQ repository.

    Entries are keyed by ``(event_id, projection_name)``; adding the same
    failure again updates the existing entry.

    Example:
        >>> dlq = InMemoryDLQRepository()
        >>> await dlq.add_failed_event(
        ...     event_id=job.id,
        ...     projection_name="ChatSummaryProjector",
        ...     event_type="MessageCreated",
        ...     event_data=job.to_dict(),
        ...     error=error,
        ...     retry_count=4,
        ... )
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._entries: dict[str, DLQEntry] = {}
        self._id_counter: int = 0
        self._lock: asyncio.Lock = asyncio.Lock()

    def _make_key(self, event_id: UUID, projection_name: str) -> str:
        return f"{event_id}:{projection_name}"

    async def add_failed_event(
        self,
        event_id: UUID,
        projection_name: str,
        event_type: str,
        event_data: dict[str, Any],
        error: Exception,
        retry_count: int = 0,
    ) -> None:
        with self._tracer.span(
            "ragestate.dlq.add",
            {
                ATTR_EVENT_ID: str(event_id),
                ATTR_EVENT_TYPE: event_type,
                ATTR_PROJECTION_NAME: projection_name,
                ATTR_ERROR_TYPE: str(error)[:100],
                ATTR_RETRY_COUNT: retry_count,
                ATTR_DB_SYSTEM: "memory",
            },
        ):
            now = datetime.now(UTC)
            key = self._make_key(event_id, projection_name)
            stacktrace = "".join(traceback.format_exception(error))

            async with self._lock:
                existing = self._entries.get(key)
                if existing:
                    existing.retry_count = retry_count
                    existing.last_failed_at = now
                    existing.error_message = str(error)
                    existing.error_stacktrace = stacktrace
                    existing.status = "failed"
                else:
                    self._id_counter += 1
                    self._entries[key] = DLQEntry(
                        id=self._id_counter,
                        event_id=event_id,
                        projection_name=projection_name,
                        event_type=event_type,
                        event_data=json_dumps(event_data),
                        error_message=str(error),
                        error_stacktrace=stacktrace,
                        retry_count=retry_count,
                        first_failed_at=now,
                        last_failed_at=now,
                        status="failed",
                    )

    async def get_failed_events(
        self,
        projection_name: str | None = None,
        status: str = "failed",
        limit: int = 100,
    ) -> list[DLQEntry]:
        """Entries with the given status, most recent first."""
        span_attributes: dict[str, Any] = {"status_filter": status, ATTR_DB_SYSTEM: "memory"}
        if projection_name:
            span_attributes[ATTR_PROJECTION_NAME] = projection_name

        with self._tracer.span("ragestate.dlq.get", span_attributes):
            async with self._lock:
                entries = [e for e in self._entries.values() if e.status == status]
            if projection_name:
                entries = [e for e in entries if e.projection_name == projection_name]
            entries.sort(
                key=lambda e: e.first_failed_at or datetime.min.replace(tzinfo=UTC),
                reverse=True,
            )
            return entries[:limit]

    async def get_failed_event_by_id(self, dlq_id: int) -> DLQEntry | None:
        async with self._lock:
            for entry in self._entries.values():
                if entry.id == dlq_id:
                    return entry
            return None

    async def mark_resolved(self, dlq_id: int, resolved_by: str) -> None:
        with self._tracer.span(
            "ragestate.dlq.resolve",
            {"dlq.id": str(dlq_id), ATTR_DB_SYSTEM: "memory"},
        ):
            now = datetime.now(UTC)
            async with self._lock:
                for entry in self._entries.values():
                    if entry.id == dlq_id:
                        entry.status = "resolved"
                        entry.resolved_at = now
                        entry.resolved_by = resolved_by
                        break

    async def mark_retrying(self, dlq_id: int) -> None:
        async with self._lock:
            for entry in self._entries.values():
                if entry.id == dlq_id:
                    entry.status = "retrying"
                    break

    async def get_failure_stats(self) -> DLQStats:
        with self._tracer.span("ragestate.dlq.get_stats", {ATTR_DB_SYSTEM: "memory"}):
            async with self._lock:
                active = [e for e in self._entries.values() if e.status in ("failed", "retrying")]

            oldest = min((e.first_failed_at for e in active if e.first_failed_at), default=None)
            return DLQStats(
                total_failed=sum(1 for e in active if e.status == "failed"),
                total_retrying=sum(1 for e in active if e.status == "retrying"),
                affected_projections=len({e.projection_name for e in active}),
                oldest_failure=oldest.isoformat() if oldest else None,
            )

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._id_counter = 0


__all__ = [
    "DLQEntry",
    "DLQStats",
    "DLQRepository",
    "InMemoryDLQRepository",
]
