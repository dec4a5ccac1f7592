"""
Unit tests for the fan-out outbox and the dead letter queue.
"""

from uuid import uuid4

import pytest

from ragestate.repositories.dlq import InMemoryDLQRepository
from ragestate.repositories.outbox import InMemoryFanoutOutbox
from ragestate.serialization import json_loads

LAST_MESSAGE = {"text": "hi", "sender_id": "alice", "created_at": "2025-01-01T00:00:00+00:00"}


class TestInMemoryFanoutOutbox:
    """Tests for InMemoryFanoutOutbox."""

    @pytest.fixture
    def outbox(self) -> InMemoryFanoutOutbox:
        return InMemoryFanoutOutbox(enable_tracing=False)

    @pytest.mark.asyncio
    async def test_enqueue_is_idempotent_per_recipient(self, outbox):
        """The same message and recipient yields one job."""
        event_id = uuid4()

        first = await outbox.enqueue(event_id, "dm_alice_bob", "bob", "alice", 1, LAST_MESSAGE)
        again = await outbox.enqueue(event_id, "dm_alice_bob", "bob", "alice", 1, LAST_MESSAGE)
        await outbox.enqueue(event_id, "dm_alice_bob", "alice", "alice", 1, LAST_MESSAGE)

        assert again.id == first.id
        assert len(await outbox.list_jobs(event_id)) == 2

    @pytest.mark.asyncio
    async def test_sender_job(self, outbox):
        job = await outbox.enqueue(uuid4(), "dm_alice_bob", "alice", "alice", 1, LAST_MESSAGE)
        assert job.is_sender

    @pytest.mark.asyncio
    async def test_pending_jobs_filtered_by_event(self, outbox):
        mine, other = uuid4(), uuid4()
        await outbox.enqueue(mine, "dm_alice_bob", "bob", "alice", 1, LAST_MESSAGE)
        await outbox.enqueue(other, "dm_alice_bob", "bob", "alice", 2, LAST_MESSAGE)

        pending = await outbox.get_pending_jobs(event_id=mine)

        assert [job.event_id for job in pending] == [mine]

    @pytest.mark.asyncio
    async def test_status_transitions_and_stats(self, outbox):
        event_id = uuid4()
        a = await outbox.enqueue(event_id, "dm_alice_bob", "alice", "alice", 1, LAST_MESSAGE)
        b = await outbox.enqueue(event_id, "dm_alice_bob", "bob", "alice", 1, LAST_MESSAGE)

        await outbox.record_attempt(a.id)
        await outbox.mark_completed(a.id)
        await outbox.record_attempt(b.id, "boom")
        await outbox.mark_failed(b.id, "boom")

        stats = await outbox.get_stats()
        assert (stats.completed_count, stats.failed_count, stats.pending_count) == (1, 1, 0)
        failed = await outbox.get_job(b.id)
        assert failed.attempts == 1
        assert failed.last_error == "boom"
        assert failed.completed_at is not None
        assert await outbox.get_pending_jobs() == []


class TestInMemoryDLQRepository:
    """Tests for InMemoryDLQRepository."""

    @pytest.fixture
    def repo(self) -> InMemoryDLQRepository:
        return InMemoryDLQRepository(enable_tracing=False)

    @pytest.mark.asyncio
    async def test_add_and_get(self, repo):
        job_id = uuid4()
        await repo.add_failed_event(
            event_id=job_id,
            projection_name="ChatSummaryProjector",
            event_type="MessageCreated",
            event_data={"recipient_id": "bob"},
            error=RuntimeError("write failed"),
            retry_count=3,
        )

        entries = await repo.get_failed_events()

        assert len(entries) == 1
        assert entries[0].event_id == job_id
        assert entries[0].error_message == "write failed"
        assert "RuntimeError" in entries[0].error_stacktrace
        assert json_loads(entries[0].event_data) == {"recipient_id": "bob"}

    @pytest.mark.asyncio
    async def test_repeat_failure_updates_entry(self, repo):
        job_id = uuid4()
        for attempt in (1, 2):
            await repo.add_failed_event(
                job_id, "ChatSummaryProjector", "MessageCreated", {}, ValueError(f"e{attempt}"),
                attempt,
            )

        entries = await repo.get_failed_events()
        assert len(entries) == 1
        assert entries[0].retry_count == 2
        assert entries[0].error_message == "e2"

    @pytest.mark.asyncio
    async def test_resolve_and_stats(self, repo):
        await repo.add_failed_event(uuid4(), "A", "MessageCreated", {}, ValueError("x"))
        await repo.add_failed_event(uuid4(), "B", "MessageCreated", {}, ValueError("y"))
        first = (await repo.get_failed_events(projection_name="A"))[0]

        await repo.mark_resolved(first.id, resolved_by="ops")

        stats = await repo.get_failure_stats()
        assert stats.total_failed == 1
        assert stats.affected_projections == 1
        resolved = await repo.get_failed_event_by_id(first.id)
        assert resolved.status == "resolved"
        assert resolved.resolved_by == "ops"
