"""
Unit tests for InMemoryEventBus and declarative projection dispatch.
"""

import asyncio

import pytest

from ragestate.bus.memory import InMemoryEventBus
from ragestate.events.feed import PostLiked, PostUnliked
from ragestate.handlers import handles
from ragestate.projections.base import DeclarativeProjection


class LikeTally(DeclarativeProjection):
    def __init__(self) -> None:
        super().__init__()
        self.count = 0

    @handles(PostLiked)
    async def _on_liked(self, event: PostLiked) -> None:
        self.count += 1

    @handles(PostUnliked)
    async def _on_unliked(self, event: PostUnliked) -> None:
        self.count -= 1

    async def reset(self) -> None:
        self.count = 0


class TestInMemoryEventBus:
    """Tests for subscription and dispatch."""

    @pytest.fixture
    def event_bus(self) -> InMemoryEventBus:
        return InMemoryEventBus(enable_tracing=False)

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self, event_bus):
        seen: list[str] = []

        def sync_handler(event: PostLiked) -> None:
            seen.append(f"sync:{event.user_id}")

        async def async_handler(event: PostLiked) -> None:
            seen.append(f"async:{event.user_id}")

        event_bus.subscribe(PostLiked, sync_handler)
        event_bus.subscribe(PostLiked, async_handler)
        await event_bus.publish([PostLiked(post_id="p1", user_id="alice")])

        assert sorted(seen) == ["async:alice", "sync:alice"]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, event_bus):
        """One handler raising does not stop the others."""
        seen: list[str] = []

        async def broken(event: PostLiked) -> None:
            raise RuntimeError("boom")

        async def working(event: PostLiked) -> None:
            seen.append(event.user_id)

        event_bus.subscribe(PostLiked, broken)
        event_bus.subscribe(PostLiked, working)
        await event_bus.publish([PostLiked(post_id="p1", user_id="alice")])

        assert seen == ["alice"]
        assert event_bus.get_stats()["handler_errors"] == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        seen: list[str] = []

        async def handler(event: PostLiked) -> None:
            seen.append(event.user_id)

        event_bus.subscribe(PostLiked, handler)
        assert event_bus.unsubscribe(PostLiked, handler)
        await event_bus.publish([PostLiked(post_id="p1", user_id="alice")])

        assert seen == []
        assert event_bus.get_subscriber_count(PostLiked) == 0

    @pytest.mark.asyncio
    async def test_wildcard_handler(self, event_bus):
        seen: list[str] = []

        async def handler(event) -> None:
            seen.append(event.event_type)

        event_bus.subscribe_to_all_events(handler)
        await event_bus.publish(
            [PostLiked(post_id="p1", user_id="a"), PostUnliked(post_id="p1", user_id="a")]
        )

        assert seen == ["PostLiked", "PostUnliked"]

    @pytest.mark.asyncio
    async def test_subscribe_all_routes_to_projection(self, event_bus):
        tally = LikeTally()
        event_bus.subscribe_all(tally)

        await event_bus.publish(
            [
                PostLiked(post_id="p1", user_id="a"),
                PostLiked(post_id="p1", user_id="b"),
                PostUnliked(post_id="p1", user_id="a"),
            ]
        )

        assert tally.count == 1
        assert set(tally.subscribed_to()) == {PostLiked, PostUnliked}

    @pytest.mark.asyncio
    async def test_background_publish_and_shutdown(self, event_bus):
        seen: list[str] = []

        async def handler(event: PostLiked) -> None:
            await asyncio.sleep(0)
            seen.append(event.user_id)

        event_bus.subscribe(PostLiked, handler)
        await event_bus.publish([PostLiked(post_id="p1", user_id="alice")], background=True)
        await event_bus.shutdown(timeout=1.0)

        assert seen == ["alice"]
        assert event_bus.get_background_task_count() == 0
