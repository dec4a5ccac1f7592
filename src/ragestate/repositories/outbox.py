"""
Outbox of per-recipient chat summary fan-out jobs.

Each new message produces one job per chat member. Jobs are recorded
before any summary is touched, so a recipient whose update fails can be
retried or dead-lettered without affecting the others.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal
from uuid import UUID, uuid4

from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_CHAT_ID,
    ATTR_DB_SYSTEM,
    ATTR_EVENT_COUNT,
    ATTR_EVENT_ID,
    ATTR_USER_ID,
)

FanoutJobStatus = Literal["pending", "completed", "skipped", "failed"]


@dataclass
class FanoutJob:
    """
    One recipient's summary update for one message.

    Attributes:
        id: Job identifier
        event_id: Id of the MessageCreated event being fanned out
        chat_id: Chat the message belongs to
        recipient_id: Member whose summary is updated
        sender_id: Author of the message
        stream_position: Position of the message in the chat stream
        last_message: JSON-compatible LastMessage snapshot
        status: pending, completed, skipped or failed
        attempts: Update attempts made so far
        last_error: Error message from the most recent failed attempt
    """

    id: UUID
    event_id: UUID
    chat_id: str
    recipient_id: str
    sender_id: str
    stream_position: int
    last_message: dict[str, Any]
    created_at: datetime
    status: FanoutJobStatus = "pending"
    attempts: int = 0
    last_error: str | None = None
    completed_at: datetime | None = None

    @property
    def is_sender(self) -> bool:
        return self.recipient_id == self.sender_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "event_id": str(self.event_id),
            "chat_id": self.chat_id,
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "stream_position": self.stream_position,
            "last_message": self.last_message,
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class FanoutStats:
    pending_count: int = 0
    completed_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    by_status: dict[str, int] = field(default_factory=dict)


class InMemoryFanoutOutbox:
    """
    In-memory outbox of fan-out jobs.

    Enqueueing is idempotent per ``(event_id, recipient_id)``: a message
    delivered to the projector twice yields one job per recipient.

    Example:
        >>> outbox = InMemoryFanoutOutbox()
        >>> job = await outbox.enqueue(event_id, "dm_a_b", "b", "a", 3, last_message)
        >>> pending = await outbox.get_pending_jobs()
        >>> await outbox.mark_completed(pending[0].id)
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._jobs: dict[UUID, FanoutJob] = {}
        self._by_key: dict[tuple[UUID, str], UUID] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def enqueue(
        self,
        event_id: UUID,
        chat_id: str,
        recipient_id: str,
        sender_id: str,
        stream_position: int,
        last_message: dict[str, Any],
    ) -> FanoutJob:
        with self._tracer.span(
            "ragestate.outbox.enqueue",
            {
                ATTR_EVENT_ID: str(event_id),
                ATTR_CHAT_ID: chat_id,
                ATTR_USER_ID: recipient_id,
                ATTR_DB_SYSTEM: "memory",
            },
        ):
            async with self._lock:
                existing_id = self._by_key.get((event_id, recipient_id))
                if existing_id is not None:
                    return self._jobs[existing_id]

                job = FanoutJob(
                    id=uuid4(),
                    event_id=event_id,
                    chat_id=chat_id,
                    recipient_id=recipient_id,
                    sender_id=sender_id,
                    stream_position=stream_position,
                    last_message=last_message,
                    created_at=datetime.now(UTC),
                )
                self._jobs[job.id] = job
                self._by_key[(event_id, recipient_id)] = job.id
                return job

    async def get_pending_jobs(
        self,
        limit: int = 100,
        *,
        event_id: UUID | None = None,
    ) -> list[FanoutJob]:
        """Pending jobs, oldest first, optionally for a single message."""
        with self._tracer.span(
            "ragestate.outbox.get_pending",
            {ATTR_DB_SYSTEM: "memory"},
        ) as span:
            async with self._lock:
                pending = [
                    j
                    for j in self._jobs.values()
                    if j.status == "pending" and (event_id is None or j.event_id == event_id)
                ]
            pending.sort(key=lambda j: j.created_at)
            result = pending[:limit]
            if span:
                span.set_attribute(ATTR_EVENT_COUNT, len(result))
            return result

    async def get_job(self, job_id: UUID) -> FanoutJob | None:
        async with self._lock:
            return self._jobs.get(job_id)

    async def list_jobs(self, event_id: UUID) -> list[FanoutJob]:
        async with self._lock:
            return [j for j in self._jobs.values() if j.event_id == event_id]

    async def record_attempt(self, job_id: UUID, error: str | None = None) -> None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                job.attempts += 1
                job.last_error = error

    async def mark_completed(self, job_id: UUID) -> None:
        await self._set_status(job_id, "completed")

    async def mark_skipped(self, job_id: UUID, reason: str) -> None:
        await self._set_status(job_id, "skipped", reason)

    async def mark_failed(self, job_id: UUID, error: str) -> None:
        await self._set_status(job_id, "failed", error)

    async def _set_status(
        self,
        job_id: UUID,
        status: FanoutJobStatus,
        error: str | None = None,
    ) -> None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = status
            if error is not None:
                job.last_error = error
            if status != "pending":
                job.completed_at = datetime.now(UTC)

    async def get_stats(self) -> FanoutStats:
        async with self._lock:
            counts: dict[str, int] = {}
            for job in self._jobs.values():
                counts[job.status] = counts.get(job.status, 0) + 1
        return FanoutStats(
            pending_count=counts.get("pending", 0),
            completed_count=counts.get("completed", 0),
            skipped_count=counts.get("skipped", 0),
            failed_count=counts.get("failed", 0),
            by_status=counts,
        )

    async def clear(self) -> None:
        async with self._lock:
            self._jobs.clear()
            self._by_key.clear()


__all__ = [
    "FanoutJob",
    "FanoutJobStatus",
    "FanoutStats",
    "InMemoryFanoutOutbox",
]
