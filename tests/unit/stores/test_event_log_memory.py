"""
Unit tests for the in-memory event log store.

Covers idempotent append, positions, read options, annotations and
stream watchers.
"""

from uuid import uuid4

import pytest
import pytest_asyncio

from ragestate.events.chat import MessageCreated, chat_stream
from ragestate.events.feed import PostCreated
from ragestate.exceptions import EventNotFoundError
from ragestate.stores.in_memory import InMemoryEventLogStore
from ragestate.stores.interface import ReadDirection, ReadOptions


class RecordingPublisher:
    def __init__(self) -> None:
        self.published = []

    async def publish(self, events) -> None:
        self.published.extend(events)


def message(text: str, chat_id: str = "dm_alice_bob", sender: str = "alice") -> MessageCreated:
    return MessageCreated(chat_id=chat_id, sender_id=sender, text=text)


class TestAppend:
    """Tests for appending events."""

    @pytest.fixture
    def publisher(self) -> RecordingPublisher:
        return RecordingPublisher()

    @pytest.fixture
    def log(self, publisher: RecordingPublisher) -> InMemoryEventLogStore:
        return InMemoryEventLogStore(publisher=publisher, enable_tracing=False)

    @pytest.mark.asyncio
    async def test_assigns_stream_and_global_positions(self, log):
        """Stream positions count per stream; global positions count across streams."""
        first = await log.append(message("one"))
        other = await log.append(message("elsewhere", chat_id="dm_carol_dave"))
        second = await log.append(message("two"))

        assert (first.stream_position, first.global_position) == (1, 1)
        assert (other.stream_position, other.global_position) == (1, 2)
        assert (second.stream_position, second.global_position) == (2, 3)
        assert await log.get_stream_position(chat_stream("dm_alice_bob")) == 2
        assert await log.get_global_position() == 3

    @pytest.mark.asyncio
    async def test_append_is_idempotent_by_event_id(self, log, publisher):
        """Appending the same event twice stores and publishes it once."""
        event = message("hello")

        first = await log.append(event)
        again = await log.append(event)

        assert again == first
        assert log.event_count == 1
        assert publisher.published == [event]

    @pytest.mark.asyncio
    async def test_server_timestamp_is_assigned(self, log):
        """stored_at comes from the store, not from the writer."""
        stored = await log.append(message("hello"))
        assert stored.stored_at.tzinfo is not None
        assert stored.stored_at >= stored.event.occurred_at

    @pytest.mark.asyncio
    async def test_get_event(self, log):
        """Stored events can be fetched by id; unknown ids return None."""
        stored = await log.append(PostCreated(user_id="alice", content="first post"))

        assert await log.get_event(stored.event_id) == stored
        assert await log.get_event(uuid4()) is None
        assert await log.event_exists(stored.event_id)


class TestReadOptions:
    """Tests for reading streams with options."""

    @pytest_asyncio.fixture
    async def log(self) -> InMemoryEventLogStore:
        log = InMemoryEventLogStore(enable_tracing=False)
        for i in range(1, 6):
            await log.append(message(f"m{i}"))
        return log

    @pytest.mark.asyncio
    async def test_forward_read_is_oldest_first(self, log):
        """Default reads return the whole stream oldest first."""
        events = await log.read_stream(chat_stream("dm_alice_bob"))
        assert [e.stream_position for e in events] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_backward_read_with_limit(self, log):
        """A backward read with a limit returns the newest events."""
        events = await log.read_stream(
            chat_stream("dm_alice_bob"),
            ReadOptions(direction=ReadDirection.BACKWARD, limit=2),
        )
        assert [e.event.text for e in events] == ["m5", "m4"]

    @pytest.mark.asyncio
    async def test_before_position_is_exclusive(self, log):
        """before_position pages further back without repeating the cursor."""
        events = await log.read_stream(
            chat_stream("dm_alice_bob"),
            ReadOptions(direction=ReadDirection.BACKWARD, limit=2, before_position=4),
        )
        assert [e.stream_position for e in events] == [3, 2]

    @pytest.mark.asyncio
    async def test_after_position(self, log):
        events = await log.read_stream(chat_stream("dm_alice_bob"), ReadOptions(after_position=3))
        assert [e.stream_position for e in events] == [4, 5]

    @pytest.mark.asyncio
    async def test_unknown_stream_is_empty(self, log):
        assert await log.read_stream("chats/nope/messages") == []

    def test_limit_must_be_positive(self):
        """ReadOptions rejects a zero limit."""
        with pytest.raises(ValueError, match="limit"):
            ReadOptions(limit=0)


class TestAnnotations:
    """Tests for annotate and annotate_union."""

    @pytest.fixture
    def log(self) -> InMemoryEventLogStore:
        return InMemoryEventLogStore(enable_tracing=False)

    @pytest.mark.asyncio
    async def test_annotate_sets_flag(self, log):
        stored = await log.append(message("hello"))

        updated = await log.annotate(stored.event_id, flagged=True, flag_reasons=["spam"])

        assert updated.flagged
        assert (await log.get_event(stored.event_id)).annotations["flag_reasons"] == ["spam"]
        assert updated.event == stored.event

    @pytest.mark.asyncio
    async def test_annotate_union_skips_existing_values(self, log):
        """Union semantics: a user appears in deleted_for once."""
        stored = await log.append(message("hello"))

        await log.annotate_union(stored.event_id, "deleted_for", ["alice"])
        updated = await log.annotate_union(stored.event_id, "deleted_for", ["alice", "bob"])

        assert updated.deleted_for == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_annotating_unknown_event_raises(self, log):
        with pytest.raises(EventNotFoundError):
            await log.annotate(uuid4(), flagged=True)
        with pytest.raises(EventNotFoundError):
            await log.annotate_union(uuid4(), "deleted_for", ["alice"])


class TestWatch:
    """Tests for stream watchers."""

    @pytest.fixture
    def log(self) -> InMemoryEventLogStore:
        return InMemoryEventLogStore(enable_tracing=False)

    @pytest.mark.asyncio
    async def test_watcher_is_notified_for_its_stream_only(self, log):
        changes: list[str] = []

        async def listener(stream_id: str) -> None:
            changes.append(stream_id)

        log.watch(chat_stream("dm_alice_bob"), listener)
        await log.append(message("mine"))
        await log.append(message("not mine", chat_id="dm_carol_dave"))

        assert changes == [chat_stream("dm_alice_bob")]

    @pytest.mark.asyncio
    async def test_annotation_notifies_watchers(self, log):
        stored = await log.append(message("hello"))
        changes: list[str] = []

        async def listener(stream_id: str) -> None:
            changes.append(stream_id)

        log.watch(stored.stream_id, listener)
        await log.annotate_union(stored.event_id, "deleted_for", ["alice"])

        assert changes == [stored.stream_id]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self, log):
        changes: list[str] = []

        async def listener(stream_id: str) -> None:
            changes.append(stream_id)

        unsubscribe = log.watch(chat_stream("dm_alice_bob"), listener)
        unsubscribe()
        await log.append(message("hello"))

        assert changes == []
        assert log.watcher_count(chat_stream("dm_alice_bob")) == 0

    @pytest.mark.asyncio
    async def test_failing_watcher_does_not_fail_append(self, log):
        """A listener error is logged and the write still succeeds."""

        async def broken(stream_id: str) -> None:
            raise RuntimeError("listener exploded")

        log.watch(chat_stream("dm_alice_bob"), broken)
        stored = await log.append(message("hello"))

        assert stored.stream_position == 1
