"""
Comment thread for a single post, with optimistic comments.

Comments are shown oldest first. The thread keeps the newest comments
live and widens that window on ``load_more``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4

from ragestate.client.chat import SessionUser
from ragestate.client.reconcile import pending_optimistic, reconcile, temp_id
from ragestate.config import FeedConfig
from ragestate.events.feed import CommentCreated, CommentDeleted, comments_stream
from ragestate.exceptions import UnexpectedEventTypeError, ValidationError
from ragestate.stores.interface import EventLogStore, StoredEvent
from ragestate.stores.live import LiveQuery, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentView:
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime
    user_display_name: str | None = None
    client_key: str | None = None
    optimistic: bool = False

    @property
    def author_id(self) -> str:
        return self.user_id

    @classmethod
    def from_stored(cls, stored: StoredEvent) -> "CommentView":
        event = stored.event
        if not isinstance(event, CommentCreated):
            raise UnexpectedEventTypeError(event.event_id, "CommentCreated", event.event_type)
        return cls(
            id=event.comment_id,
            post_id=event.post_id,
            user_id=event.user_id,
            content=event.content,
            created_at=stored.stored_at,
            user_display_name=event.user_display_name,
            client_key=event.comment_id,
        )


class CommentThread:
    """
    Live comments for one post.

    Example:
        >>> thread = CommentThread(store, "p1", SessionUser("u1", "Ava"))
        >>> await thread.open()
        >>> await thread.add("nice set")
        >>> thread.close()
    """

    def __init__(
        self,
        store: EventLogStore,
        post_id: str,
        user: SessionUser | None,
        *,
        config: FeedConfig | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._post_id = post_id
        self._user = user
        self._config = config or FeedConfig()
        self._on_change = on_change
        self._take = self._config.comment_page_size
        self._query: LiveQuery | None = None
        self._comments: list[CommentView] = []
        self._optimistic: list[CommentView] = []
        self._hidden: set[str] = set()
        self._has_more = True
        self._loading = False
        self._error: str | None = None

    @property
    def comments(self) -> list[CommentView]:
        merged = reconcile(self._comments, self._optimistic)
        return [c for c in merged if c.id not in self._hidden]

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    async def open(self) -> None:
        if self._query is not None:
            return
        await self._subscribe()

    def close(self) -> None:
        if self._query is not None:
            self._query.unsubscribe()
            self._query = None

    async def load_more(self) -> bool:
        """Widen the live window by one page. Rejected while loading or at the end."""
        if self._loading or not self._has_more:
            return False
        self._take += self._config.comment_page_size
        self.close()
        await self._subscribe()
        return True

    async def _subscribe(self) -> None:
        self._loading = True
        self._query = LiveQuery(
            self._store,
            comments_stream(self._post_id),
            limit=self._take,
            on_snapshot=self._on_snapshot,
            on_error=self._on_error,
        )
        await self._query.start()

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        deleted: set[str] = set()
        created: list[CommentView] = []
        for stored in reversed(snapshot.events):
            if isinstance(stored.event, CommentDeleted):
                deleted.add(stored.event.comment_id)
            elif isinstance(stored.event, CommentCreated):
                created.append(CommentView.from_stored(stored))

        self._comments = [c for c in created if c.id not in deleted]
        self._hidden -= deleted
        self._optimistic = pending_optimistic(self._comments, self._optimistic)
        self._has_more = snapshot.size >= self._take
        self._loading = False
        self._error = None
        self._emit()

    def _on_error(self, error: Exception) -> None:
        self._loading = False
        self._error = str(error)
        self._emit()

    async def add(self, text: str) -> str:
        """
        Post a comment, showing it immediately.

        Returns:
            The new comment's id

        Raises:
            ValidationError: If no user is signed in or the text is blank
        """
        if self._user is None:
            raise ValidationError("user", "sign in to comment")
        content = (text or "").strip()
        if not content:
            raise ValidationError("content", "comment is empty")

        comment_id = uuid4()
        optimistic = CommentView(
            id=temp_id(str(comment_id)),
            post_id=self._post_id,
            user_id=self._user.user_id,
            content=content,
            created_at=datetime.now(UTC),
            user_display_name=self._user.display_name,
            client_key=str(comment_id),
            optimistic=True,
        )
        self._optimistic.append(optimistic)
        self._emit()

        try:
            await self._store.append(
                CommentCreated(
                    event_id=comment_id,
                    post_id=self._post_id,
                    user_id=self._user.user_id,
                    user_display_name=self._user.display_name,
                    content=content,
                    actor_id=self._user.user_id,
                )
            )
        except Exception as e:
            self._optimistic = [c for c in self._optimistic if c.id != optimistic.id]
            self._error = str(e)
            logger.error(
                "Failed to post comment on %s: %s",
                self._post_id,
                e,
                extra={"post_id": self._post_id, "comment_id": str(comment_id)},
            )
            self._emit()
            raise
        return str(comment_id)

    async def delete(self, comment_id: str) -> None:
        """
        Delete one of the current user's comments, hiding it immediately.

        Raises:
            ValidationError: If no user is signed in or the comment is not theirs
        """
        if self._user is None:
            raise ValidationError("user", "sign in to delete comments")
        stored = await self._store.get_event(UUID(comment_id))
        if (
            stored is None
            or not isinstance(stored.event, CommentCreated)
            or stored.event.user_id != self._user.user_id
        ):
            raise ValidationError("comment_id", "only the author can delete a comment")

        self._hidden.add(comment_id)
        self._emit()
        try:
            await self._store.append(
                CommentDeleted(
                    post_id=self._post_id,
                    comment_id=comment_id,
                    user_id=self._user.user_id,
                    actor_id=self._user.user_id,
                )
            )
        except Exception as e:
            self._hidden.discard(comment_id)
            self._error = str(e)
            logger.error(
                "Failed to delete comment %s on %s: %s",
                comment_id,
                self._post_id,
                e,
                extra={"post_id": self._post_id, "comment_id": comment_id},
            )
            self._emit()
            raise

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = ["CommentView", "CommentThread"]
