"""
Post document and counter projector.

Likes and comments live in per-post streams; the post document carries
``like_count`` and ``comment_count`` aggregates that are updated by ±1 as
those streams change. The counters are eventually consistent, and
``reconcile`` recounts them from the streams.
"""

import logging

from ragestate.events.feed import (
    CommentCreated,
    CommentDeleted,
    PostCreated,
    PostLiked,
    PostUnliked,
    comments_stream,
    likes_stream,
)
from ragestate.exceptions import DocumentNotFoundError
from ragestate.handlers.decorators import handles
from ragestate.observability import ATTR_POST_ID, ATTR_PROJECTION_NAME, Tracer
from ragestate.projections.base import DeclarativeProjection
from ragestate.readmodels.feed import PostDocument, post_document_id
from ragestate.readmodels.in_memory import InMemoryDocumentRepository
from ragestate.stores.interface import EventLogStore, ReadOptions

logger = logging.getLogger(__name__)


class PostCounterProjector(DeclarativeProjection):
    def __init__(
        self,
        store: EventLogStore,
        posts: InMemoryDocumentRepository[PostDocument],
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = False,
    ) -> None:
        super().__init__(tracer=tracer, enable_tracing=enable_tracing)
        self._store = store
        self._posts = posts

    @handles(PostCreated)
    async def _on_post_created(self, event: PostCreated) -> None:
        stored = await self._store.get_event(event.event_id)
        await self._posts.save(
            PostDocument(
                id=post_document_id(event.post_id),
                post_id=event.post_id,
                user_id=event.user_id,
                user_display_name=event.user_display_name,
                content=event.content,
                media_urls=list(event.media_urls),
                is_public=event.is_public,
                timestamp=stored.stored_at if stored is not None else event.occurred_at,
            )
        )

    @handles(PostLiked)
    async def _on_post_liked(self, event: PostLiked) -> None:
        await self._apply_delta(event.post_id, "like_count", 1)

    @handles(PostUnliked)
    async def _on_post_unliked(self, event: PostUnliked) -> None:
        await self._apply_delta(event.post_id, "like_count", -1)

    @handles(CommentCreated)
    async def _on_comment_created(self, event: CommentCreated) -> None:
        await self._apply_delta(event.post_id, "comment_count", 1)

    @handles(CommentDeleted)
    async def _on_comment_deleted(self, event: CommentDeleted) -> None:
        await self._apply_delta(event.post_id, "comment_count", -1)

    async def _apply_delta(self, post_id: str, counter: str, delta: int) -> None:
        try:
            await self._posts.update(post_document_id(post_id), increment={counter: delta})
        except DocumentNotFoundError:
            logger.warning(
                "Post %s not found for %s update",
                post_id,
                counter,
                extra={"post_id": post_id, "counter": counter, "delta": delta},
            )

    async def reconcile(self, post_id: str) -> PostDocument:
        """
        Recount a post's likes and comments from its streams.

        A like counts while the user's most recent like event is PostLiked;
        a comment counts until it is deleted.

        Raises:
            DocumentNotFoundError: If the post document does not exist
        """
        with self._tracer.span(
            "ragestate.projection.reconcile",
            {ATTR_PROJECTION_NAME: self.projection_name, ATTR_POST_ID: post_id},
        ):
            liked_by: set[str] = set()
            for stored in await self._store.read_stream(likes_stream(post_id), ReadOptions()):
                if isinstance(stored.event, PostLiked):
                    liked_by.add(stored.event.user_id)
                elif isinstance(stored.event, PostUnliked):
                    liked_by.discard(stored.event.user_id)

            comment_ids: set[str] = set()
            for stored in await self._store.read_stream(comments_stream(post_id), ReadOptions()):
                if isinstance(stored.event, CommentCreated):
                    comment_ids.add(stored.event.comment_id)
                elif isinstance(stored.event, CommentDeleted):
                    comment_ids.discard(stored.event.comment_id)

            post = await self._posts.update(
                post_document_id(post_id),
                {"like_count": len(liked_by), "comment_count": len(comment_ids)},
            )
            logger.info(
                "Reconciled counters for post %s",
                post_id,
                extra={
                    "post_id": post_id,
                    "like_count": post.like_count,
                    "comment_count": post.comment_count,
                },
            )
            return post

    async def reset(self) -> None:
        await self._posts.clear()


__all__ = ["PostCounterProjector"]
