"""
Unit tests for LiveQuery.
"""

import pytest

from ragestate.events.chat import MessageCreated, chat_stream
from ragestate.stores.in_memory import InMemoryEventLogStore
from ragestate.stores.live import LiveQuery, Snapshot

STREAM = chat_stream("dm_alice_bob")


class FailingReadStore(InMemoryEventLogStore):
    async def read_stream(self, stream_id, options=None):
        raise RuntimeError("permission denied")


def message(text: str) -> MessageCreated:
    return MessageCreated(chat_id="dm_alice_bob", sender_id="alice", text=text)


class TestLiveQuery:
    """Tests for the newest-N live window."""

    @pytest.fixture
    def log(self) -> InMemoryEventLogStore:
        return InMemoryEventLogStore(enable_tracing=False)

    @pytest.mark.asyncio
    async def test_initial_snapshot_is_newest_first(self, log):
        for text in ("a", "b", "c"):
            await log.append(message(text))
        snapshots: list[Snapshot] = []

        query = LiveQuery(log, STREAM, limit=2, on_snapshot=snapshots.append)
        await query.start()

        assert len(snapshots) == 1
        assert [e.event.text for e in snapshots[0].events] == ["c", "b"]
        assert snapshots[0].cursor == 2
        assert snapshots[0].size == 2

    @pytest.mark.asyncio
    async def test_empty_stream_has_no_cursor(self, log):
        snapshots: list[Snapshot] = []
        await LiveQuery(log, STREAM, limit=5, on_snapshot=snapshots.append).start()

        assert snapshots[0].events == []
        assert snapshots[0].cursor is None

    @pytest.mark.asyncio
    async def test_new_event_delivers_fresh_snapshot(self, log):
        snapshots: list[Snapshot] = []
        query = LiveQuery(log, STREAM, limit=5, on_snapshot=snapshots.append)
        await query.start()

        await log.append(message("hi"))

        assert len(snapshots) == 2
        assert [e.event.text for e in snapshots[-1].events] == ["hi"]

    @pytest.mark.asyncio
    async def test_no_snapshot_after_unsubscribe(self, log):
        """Unsubscribing removes the watcher and stops delivery."""
        snapshots: list[Snapshot] = []
        query = LiveQuery(log, STREAM, limit=5, on_snapshot=snapshots.append)
        await query.start()

        query.unsubscribe()
        await log.append(message("late"))

        assert len(snapshots) == 1
        assert not query.active
        assert log.watcher_count(STREAM) == 0

    @pytest.mark.asyncio
    async def test_start_twice_subscribes_once(self, log):
        snapshots: list[Snapshot] = []
        query = LiveQuery(log, STREAM, limit=5, on_snapshot=snapshots.append)
        await query.start()
        await query.start()

        assert log.watcher_count(STREAM) == 1

    @pytest.mark.asyncio
    async def test_read_error_goes_to_on_error(self):
        errors: list[Exception] = []
        snapshots: list[Snapshot] = []
        query = LiveQuery(
            FailingReadStore(enable_tracing=False),
            STREAM,
            limit=5,
            on_snapshot=snapshots.append,
            on_error=errors.append,
        )

        await query.start()

        assert snapshots == []
        assert str(errors[0]) == "permission denied"
