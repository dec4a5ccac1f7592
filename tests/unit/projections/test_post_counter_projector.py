"""
Unit tests for PostCounterProjector.
"""

import pytest

from ragestate.events.feed import (
    CommentCreated,
    CommentDeleted,
    PostCreated,
    PostLiked,
    PostUnliked,
)
from ragestate.exceptions import DocumentNotFoundError
from ragestate.readmodels.feed import post_document_id


async def publish_post(store, **kwargs) -> str:
    stored = await store.append(PostCreated(user_id="alice", content="doors at 9", **kwargs))
    return stored.event.post_id


class TestPostCounterProjector:
    """Counters follow the like and comment streams."""

    @pytest.mark.asyncio
    async def test_post_document_created(self, store, posts, post_projector):
        stored = await store.append(
            PostCreated(user_id="alice", user_display_name="Alice", content="hello", is_public=False)
        )

        doc = await posts.get(post_document_id(stored.event.post_id))

        assert doc.content == "hello"
        assert not doc.is_public
        assert doc.timestamp == stored.stored_at
        assert (doc.like_count, doc.comment_count) == (0, 0)

    @pytest.mark.asyncio
    async def test_likes_and_unlikes(self, store, posts, post_projector):
        post_id = await publish_post(store)

        await store.append(PostLiked(post_id=post_id, user_id="bob"))
        await store.append(PostLiked(post_id=post_id, user_id="carol"))
        await store.append(PostUnliked(post_id=post_id, user_id="bob"))

        assert (await posts.get(post_document_id(post_id))).like_count == 1

    @pytest.mark.asyncio
    async def test_unlike_never_goes_below_zero(self, store, posts, post_projector):
        post_id = await publish_post(store)

        await store.append(PostUnliked(post_id=post_id, user_id="bob"))

        assert (await posts.get(post_document_id(post_id))).like_count == 0

    @pytest.mark.asyncio
    async def test_comment_counter(self, store, posts, post_projector):
        post_id = await publish_post(store)

        created = await store.append(CommentCreated(post_id=post_id, user_id="bob", content="!"))
        await store.append(CommentCreated(post_id=post_id, user_id="bob", content="!!"))
        await store.append(
            CommentDeleted(post_id=post_id, comment_id=created.event.comment_id, user_id="bob")
        )

        assert (await posts.get(post_document_id(post_id))).comment_count == 1

    @pytest.mark.asyncio
    async def test_like_for_missing_post_is_ignored(self, store, posts, post_projector):
        await store.append(PostLiked(post_id="ghost", user_id="bob"))
        assert await posts.count() == 0

    @pytest.mark.asyncio
    async def test_reconcile_recounts_from_streams(self, store, posts, post_projector):
        """Drifted counters are restored from the streams."""
        post_id = await publish_post(store)
        await store.append(PostLiked(post_id=post_id, user_id="bob"))
        await store.append(PostLiked(post_id=post_id, user_id="carol"))
        await store.append(PostUnliked(post_id=post_id, user_id="carol"))
        await store.append(PostLiked(post_id=post_id, user_id="carol"))
        await store.append(CommentCreated(post_id=post_id, user_id="bob", content="yes"))
        await posts.update(post_document_id(post_id), {"like_count": 17, "comment_count": 0})

        doc = await post_projector.reconcile(post_id)

        assert (doc.like_count, doc.comment_count) == (2, 1)

    @pytest.mark.asyncio
    async def test_reconcile_missing_post_raises(self, post_projector):
        with pytest.raises(DocumentNotFoundError):
            await post_projector.reconcile("ghost")

    @pytest.mark.asyncio
    async def test_reset_clears_documents(self, store, posts, post_projector):
        await publish_post(store)
        await post_projector.reset()
        assert await posts.count() == 0
