"""
Unit tests for FeedView pagination and live updates.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from ragestate.client.feed import FeedView
from ragestate.config import FeedConfig
from ragestate.readmodels.feed import PostDocument, post_document_id
from ragestate.readmodels.in_memory import InMemoryDocumentRepository

START = datetime(2025, 3, 14, 20, 0, tzinfo=UTC)


class GatedPosts(InMemoryDocumentRepository[PostDocument]):
    """Counts page queries and can hold them until the gate opens."""

    def __init__(self) -> None:
        super().__init__("posts", enable_tracing=False)
        self.gate = asyncio.Event()
        self.gate_pages = False
        self.page_reads = 0

    async def find(self, predicate=None, **kwargs):
        self.page_reads += 1
        if self.gate_pages:
            await self.gate.wait()
        return await super().find(predicate, **kwargs)


def make_post(n: int, *, is_public: bool = True) -> PostDocument:
    return PostDocument(
        id=post_document_id(f"p{n}"),
        post_id=f"p{n}",
        user_id="alice",
        content=f"post {n}",
        is_public=is_public,
        timestamp=START + timedelta(minutes=n),
    )


async def seed_posts(posts, count: int) -> None:
    for n in range(count):
        await posts.save(make_post(n))


def ids(view: FeedView) -> list[str]:
    return [post.post_id for post in view.posts]


class TestPagination:
    """Cursor pagination over public posts."""

    @pytest.mark.asyncio
    async def test_pages_newest_first(self):
        posts = GatedPosts()
        await seed_posts(posts, 5)
        view = FeedView(posts, config=FeedConfig(page_size=2))

        await view.start()
        assert ids(view) == ["p4", "p3"]

        assert await view.load_more()
        assert ids(view) == ["p4", "p3", "p2", "p1"]
        assert view.has_more

        assert await view.load_more()
        assert ids(view) == ["p4", "p3", "p2", "p1", "p0"]
        assert not view.has_more
        assert not await view.load_more()
        assert posts.page_reads == 3

    @pytest.mark.asyncio
    async def test_second_load_rejected_while_first_in_flight(self):
        posts = GatedPosts()
        await seed_posts(posts, 5)
        view = FeedView(posts, config=FeedConfig(page_size=2))
        await view.start()
        posts.gate_pages = True

        first = asyncio.create_task(view.load_more())
        await asyncio.sleep(0)
        assert view.loading

        assert not await view.load_more()
        posts.gate.set()

        assert await first
        assert posts.page_reads == 2
        assert ids(view) == ["p4", "p3", "p2", "p1"]

    @pytest.mark.asyncio
    async def test_private_posts_excluded(self, posts):
        await posts.save(make_post(0))
        await posts.save(make_post(1, is_public=False))
        view = FeedView(posts)

        await view.start()

        assert ids(view) == ["p0"]

    @pytest.mark.asyncio
    async def test_refresh_reloads_first_page(self, posts):
        await seed_posts(posts, 3)
        view = FeedView(posts, config=FeedConfig(page_size=2))
        await view.start()
        await view.load_more()

        await view.refresh()

        assert ids(view) == ["p2", "p1"]
        assert view.has_more
        assert view.pending == []


class TestLiveUpdates:
    """Posts written while the feed is open."""

    @pytest.mark.asyncio
    async def test_new_post_spliced_at_top(self, posts):
        await seed_posts(posts, 2)
        view = FeedView(posts)
        await view.start()

        await posts.save(make_post(9))

        assert ids(view) == ["p9", "p1", "p0"]
        assert view.pending == []

    @pytest.mark.asyncio
    async def test_new_post_buffered_when_scrolled(self, posts):
        """Away from the top, new posts wait until flushed."""
        await seed_posts(posts, 2)
        view = FeedView(posts)
        await view.start()
        view.set_at_top(False)

        await posts.save(make_post(9))

        assert ids(view) == ["p1", "p0"]
        assert [post.post_id for post in view.pending] == ["p9"]

        assert view.flush_pending()
        assert ids(view) == ["p9", "p1", "p0"]
        assert not view.flush_pending()

    @pytest.mark.asyncio
    async def test_counter_change_replaces_post_in_place(self, posts):
        await seed_posts(posts, 2)
        view = FeedView(posts)
        await view.start()

        await posts.update(post_document_id("p0"), increment={"like_count": 1})

        assert ids(view) == ["p1", "p0"]
        assert view.posts[1].like_count == 1

    @pytest.mark.asyncio
    async def test_new_private_post_ignored(self, posts):
        view = FeedView(posts)
        await view.start()

        await posts.save(make_post(3, is_public=False))

        assert view.posts == []
        assert view.pending == []

    @pytest.mark.asyncio
    async def test_closed_view_ignores_changes(self, posts):
        view = FeedView(posts)
        await view.start()
        view.close()

        await posts.save(make_post(1))

        assert view.posts == []

    @pytest.mark.asyncio
    async def test_like_on_unloaded_older_post_stays_in_place(self, posts):
        await seed_posts(posts, 15)
        view = FeedView(posts, config=FeedConfig(page_size=10))
        await view.start()
        first_page = ids(view)

        await posts.update(post_document_id("p2"), increment={"like_count": 1})

        assert ids(view) == first_page
        assert view.pending == []

        view.set_at_top(False)
        await posts.update(post_document_id("p3"), increment={"comment_count": 1})

        assert view.pending == []

        assert await view.load_more()
        assert ids(view)[-5:] == ["p4", "p3", "p2", "p1", "p0"]
        assert view.posts[-3].like_count == 1
        assert view.posts[-2].like_count == 0

    @pytest.mark.asyncio
    async def test_pending_post_updated_in_place(self, posts):
        await seed_posts(posts, 2)
        view = FeedView(posts)
        await view.start()
        view.set_at_top(False)
        await posts.save(make_post(9))

        await posts.update(post_document_id("p9"), increment={"like_count": 2})

        assert [(p.post_id, p.like_count) for p in view.pending] == [("p9", 2)]
