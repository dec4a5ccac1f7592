"""
Unit tests for CommentThread.
"""

import asyncio

import pytest
import pytest_asyncio

from ragestate.client.comments import CommentThread, CommentView
from ragestate.config import FeedConfig
from ragestate.events.chat import MessageCreated
from ragestate.events.feed import CommentCreated, CommentDeleted, PostCreated
from ragestate.exceptions import UnexpectedEventTypeError, ValidationError
from ragestate.readmodels.feed import post_document_id
from ragestate.stores.in_memory import InMemoryEventLogStore


class GatedDeleteStore(InMemoryEventLogStore):
    """Holds or rejects comment deletions."""

    def __init__(self) -> None:
        super().__init__(enable_tracing=False)
        self.gate = asyncio.Event()
        self.reached = asyncio.Event()
        self.reject = False

    async def append(self, event):
        if isinstance(event, CommentDeleted):
            if self.reject:
                raise RuntimeError("permission denied")
            self.reached.set()
            await self.gate.wait()
        return await super().append(event)


@pytest_asyncio.fixture
async def post_id(store, post_projector) -> str:
    stored = await store.append(PostCreated(user_id="alice", content="lineup drop"))
    return stored.event.post_id


class TestCommentThread:
    """Adding, deleting and paging comments."""

    @pytest.mark.asyncio
    async def test_add_comment(self, store, posts, post_id, bob):
        thread = CommentThread(store, post_id, bob)
        await thread.open()

        comment_id = await thread.add("  can't wait  ")

        assert [(c.id, c.content) for c in thread.comments] == [(comment_id, "can't wait")]
        assert not thread.comments[0].optimistic
        assert (await posts.get(post_document_id(post_id))).comment_count == 1

    @pytest.mark.asyncio
    async def test_validation(self, store, post_id, bob):
        with pytest.raises(ValidationError):
            await CommentThread(store, post_id, None).add("hi")
        with pytest.raises(ValidationError):
            await CommentThread(store, post_id, bob).add("   ")

    @pytest.mark.asyncio
    async def test_only_author_can_delete(self, store, posts, post_id, alice, bob):
        bob_thread = CommentThread(store, post_id, bob)
        await bob_thread.open()
        comment_id = await bob_thread.add("first")

        with pytest.raises(ValidationError):
            await CommentThread(store, post_id, alice).delete(comment_id)

        await bob_thread.delete(comment_id)

        assert bob_thread.comments == []
        assert (await posts.get(post_document_id(post_id))).comment_count == 0

    @pytest.mark.asyncio
    async def test_load_more_widens_window(self, store, post_id, bob):
        for i in range(5):
            await store.append(CommentCreated(post_id=post_id, user_id="bob", content=f"c{i}"))
        thread = CommentThread(store, post_id, bob, config=FeedConfig(comment_page_size=2))
        await thread.open()
        assert [c.content for c in thread.comments] == ["c3", "c4"]
        assert thread.has_more

        assert await thread.load_more()
        assert [c.content for c in thread.comments] == ["c1", "c2", "c3", "c4"]
        assert thread.has_more

        assert await thread.load_more()
        assert len(thread.comments) == 5
        assert not thread.has_more
        assert not await thread.load_more()

    @pytest.mark.asyncio
    async def test_live_comment_from_other_user(self, store, post_id, alice, bob):
        thread = CommentThread(store, post_id, alice)
        await thread.open()

        await CommentThread(store, post_id, bob).add("hello from bob")

        assert [c.user_id for c in thread.comments] == ["bob"]
        thread.close()


class TestOptimisticDelete:
    """Deleted comments disappear before the write lands."""

    @pytest.mark.asyncio
    async def test_hidden_while_delete_in_flight(self, bob):
        store = GatedDeleteStore()
        thread = CommentThread(store, "p1", bob)
        await thread.open()
        comment_id = await thread.add("first")

        task = asyncio.create_task(thread.delete(comment_id))
        await store.reached.wait()

        assert thread.comments == []

        store.gate.set()
        await task
        assert thread.comments == []

    @pytest.mark.asyncio
    async def test_failed_delete_restores_comment(self, bob):
        store = GatedDeleteStore()
        store.reject = True
        thread = CommentThread(store, "p1", bob)
        await thread.open()
        comment_id = await thread.add("first")

        with pytest.raises(RuntimeError):
            await thread.delete(comment_id)

        assert [c.id for c in thread.comments] == [comment_id]
        assert thread.error == "permission denied"


class TestCommentView:
    @pytest.mark.asyncio
    async def test_rejects_other_event_types(self, store):
        stored = await store.append(
            MessageCreated(chat_id="dm_alice_bob", sender_id="bob", text="hi")
        )

        with pytest.raises(UnexpectedEventTypeError, match="expected CommentCreated"):
            CommentView.from_stored(stored)
