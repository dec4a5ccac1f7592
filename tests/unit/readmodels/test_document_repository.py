"""
Unit tests for InMemoryDocumentRepository and chat summary parsing.
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from ragestate.exceptions import DocumentNotFoundError
from ragestate.readmodels import (
    DmChatSummary,
    EventChatSummary,
    InMemoryDocumentRepository,
    PostDocument,
    parse_chat_summary,
    post_document_id,
    summary_id,
)


def post(post_id: str, **overrides) -> PostDocument:
    data = {
        "id": post_document_id(post_id),
        "post_id": post_id,
        "user_id": "alice",
        "timestamp": datetime(2025, 1, 1, tzinfo=UTC),
    }
    data.update(overrides)
    return PostDocument(**data)


class TestSaveAndGet:
    """Tests for basic document reads and writes."""

    @pytest.fixture
    def repo(self) -> InMemoryDocumentRepository[PostDocument]:
        return InMemoryDocumentRepository("posts", enable_tracing=False)

    @pytest.mark.asyncio
    async def test_get_returns_copy(self, repo):
        """Mutating a fetched document does not change the stored one."""
        await repo.save(post("p1"))

        fetched = await repo.get("posts/p1")
        fetched.like_count = 99

        assert (await repo.get("posts/p1")).like_count == 0

    @pytest.mark.asyncio
    async def test_overwrite_keeps_created_at_and_bumps_version(self, repo):
        first = await repo.save(post("p1"))
        second = await repo.save(post("p1", content="edited"))

        assert second.created_at == first.created_at
        assert second.version == first.version + 1
        assert second.content == "edited"

    @pytest.mark.asyncio
    async def test_missing_document(self, repo):
        assert await repo.get("posts/nope") is None
        assert not await repo.exists("posts/nope")
        assert not await repo.delete("posts/nope")


class TestUpdate:
    """Tests for merge updates and counters."""

    @pytest.fixture
    def repo(self) -> InMemoryDocumentRepository[PostDocument]:
        return InMemoryDocumentRepository("posts", enable_tracing=False)

    @pytest.mark.asyncio
    async def test_increment(self, repo):
        await repo.save(post("p1"))

        await repo.update("posts/p1", increment={"like_count": 1})
        updated = await repo.update("posts/p1", increment={"like_count": 1, "comment_count": 2})

        assert (updated.like_count, updated.comment_count) == (2, 2)

    @pytest.mark.asyncio
    async def test_counters_never_go_negative(self, repo):
        """A decrement below zero floors at zero."""
        await repo.save(post("p1"))

        updated = await repo.update("posts/p1", increment={"like_count": -1})

        assert updated.like_count == 0

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, repo):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await repo.update("posts/nope", {"content": "x"})
        assert exc_info.value.document_id == "posts/nope"

    @pytest.mark.asyncio
    async def test_update_changes_and_version(self, repo):
        saved = await repo.save(post("p1"))
        updated = await repo.update("posts/p1", {"content": "new"})
        assert updated.content == "new"
        assert updated.version == saved.version + 1
        assert updated.updated_at >= saved.updated_at


class TestFindAndBatch:
    """Tests for queries and atomic batches."""

    @pytest.fixture
    def repo(self) -> InMemoryDocumentRepository[PostDocument]:
        return InMemoryDocumentRepository("posts", enable_tracing=False)

    @pytest.mark.asyncio
    async def test_find_orders_and_limits(self, repo):
        for i in range(4):
            await repo.save(post(f"p{i}", like_count=i, is_public=i != 2))

        results = await repo.find(
            lambda p: p.is_public, order_by="like_count", descending=True, limit=2
        )

        assert [p.post_id for p in results] == ["p3", "p1"]

    @pytest.mark.asyncio
    async def test_batch_commits_all_writes(self, repo):
        await repo.save(post("p1"))

        batch = repo.batch()
        batch.set(post("p2")).update("posts/p1", increment={"like_count": 1}).delete("posts/p9")
        await batch.commit()

        assert await repo.count() == 2
        assert (await repo.get("posts/p1")).like_count == 1

    @pytest.mark.asyncio
    async def test_batch_is_all_or_nothing(self, repo):
        """An update to a missing document aborts every write in the batch."""
        batch = repo.batch().set(post("p1")).update("posts/missing", {"content": "x"})

        with pytest.raises(DocumentNotFoundError):
            await batch.commit()

        assert await repo.count() == 0

    @pytest.mark.asyncio
    async def test_batch_cannot_commit_twice(self, repo):
        batch = repo.batch().set(post("p1"))
        await batch.commit()
        with pytest.raises(RuntimeError):
            await batch.commit()


class TestWatch:
    """Tests for change listeners."""

    @pytest.fixture
    def repo(self) -> InMemoryDocumentRepository[PostDocument]:
        return InMemoryDocumentRepository("posts", enable_tracing=False)

    @pytest.mark.asyncio
    async def test_listener_receives_changed_ids(self, repo):
        changes: list[list[str]] = []

        async def listener(ids: list[str]) -> None:
            changes.append(ids)

        unsubscribe = repo.watch(listener)
        await repo.save(post("p1"))
        await repo.update("posts/p1", increment={"like_count": 1})
        await repo.batch().set(post("p2")).set(post("p3")).commit()
        unsubscribe()
        await repo.save(post("p4"))

        assert changes == [["posts/p1"], ["posts/p1"], ["posts/p2", "posts/p3"]]


class TestParseChatSummary:
    """Tests for the tagged chat summary union."""

    def test_dm_variant(self):
        summary = parse_chat_summary(
            {
                "id": summary_id("alice", "dm_alice_bob"),
                "type": "dm",
                "user_id": "alice",
                "chat_id": "dm_alice_bob",
                "peer_id": "bob",
            }
        )
        assert isinstance(summary, DmChatSummary)
        assert summary.peer_name == "Anonymous"
        assert summary.unread_count == 0

    def test_event_variant(self):
        summary = parse_chat_summary(
            {
                "id": summary_id("alice", "ev_1"),
                "type": "event",
                "user_id": "alice",
                "chat_id": "ev_1",
                "linked_event_id": "rave-2025",
            }
        )
        assert isinstance(summary, EventChatSummary)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_chat_summary({"id": "x", "type": "group", "user_id": "a", "chat_id": "c"})

    def test_missing_variant_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_chat_summary({"id": "x", "type": "dm", "user_id": "a", "chat_id": "c"})

    def test_unread_count_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            DmChatSummary(id="x", user_id="a", chat_id="c", peer_id="b", unread_count=-1)
