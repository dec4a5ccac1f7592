"""
Public feed with cursor pagination and live new-post delivery.

Posts arrive newest first, one page at a time, ordered by
``(timestamp, id)``. Posts published while the view is open are spliced in
at the top when the reader is at the top, and otherwise held in
``pending`` until ``flush_pending``. Only posts newer than the newest one
already seen count as new; updates to older posts are picked up in place
or when their page loads.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from ragestate.config import FeedConfig
from ragestate.readmodels.feed import PostDocument
from ragestate.readmodels.in_memory import InMemoryDocumentRepository

logger = logging.getLogger(__name__)

FeedCursor = tuple[datetime, str]


def _sort_key(post: PostDocument) -> FeedCursor:
    return (post.timestamp, post.id)


class FeedView:
    """
    Example:
        >>> feed = FeedView(posts)
        >>> await feed.start()
        >>> feed.set_at_top(False)
        >>> # ... a post is published ...
        >>> len(feed.pending)
        1
        >>> feed.flush_pending()
        True
    """

    def __init__(
        self,
        posts: InMemoryDocumentRepository[PostDocument],
        *,
        config: FeedConfig | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._posts_repo = posts
        self._config = config or FeedConfig()
        self._on_change = on_change
        self._posts: list[PostDocument] = []
        self._pending: list[PostDocument] = []
        self._cursor: FeedCursor | None = None
        self._has_more = True
        self._loading = False
        self._at_top = True
        self._error: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def posts(self) -> list[PostDocument]:
        return list(self._posts)

    @property
    def pending(self) -> list[PostDocument]:
        return list(self._pending)

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def at_top(self) -> bool:
        return self._at_top

    def set_at_top(self, at_top: bool) -> None:
        self._at_top = at_top

    async def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._posts_repo.watch(self._on_documents_changed)
        if not self._posts:
            await self.load_more()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def load_more(self) -> bool:
        """
        Append the next page.

        Returns:
            False when rejected (a load is already running or the feed is
            exhausted) or when the page failed to load
        """
        if self._loading or not self._has_more:
            return False
        self._loading = True
        self._emit()
        try:
            page = await self._fetch_page(self._cursor)
        except Exception as e:
            self._error = str(e)
            logger.error("Failed to fetch feed page: %s", e, extra={"cursor": str(self._cursor)})
            return False
        finally:
            self._loading = False

        known = {post.id for post in self._posts}
        self._posts.extend(post for post in page if post.id not in known)
        if page:
            self._cursor = _sort_key(page[-1])
        if len(page) < self._config.page_size:
            self._has_more = False
        self._error = None
        self._emit()
        return True

    async def refresh(self) -> None:
        """Reload the first page and drop anything pending."""
        self._loading = True
        try:
            page = await self._fetch_page(None)
        finally:
            self._loading = False
        self._posts = page
        self._pending = []
        self._cursor = _sort_key(page[-1]) if page else None
        self._has_more = len(page) >= self._config.page_size
        self._emit()

    def flush_pending(self) -> bool:
        """
        Show buffered new posts at the top.

        Returns:
            True when posts were added and the caller should scroll to top
        """
        if not self._pending:
            return False
        known = {post.id for post in self._pending}
        self._posts = [*self._pending, *(p for p in self._posts if p.id not in known)]
        self._pending = []
        self._emit()
        return True

    async def _fetch_page(self, cursor: FeedCursor | None) -> list[PostDocument]:
        candidates = await self._posts_repo.find(
            lambda post: post.is_public and (cursor is None or _sort_key(post) < cursor)
        )
        candidates.sort(key=_sort_key, reverse=True)
        return candidates[: self._config.page_size]

    async def _on_documents_changed(self, document_ids: list[str]) -> None:
        shown = {post.id: index for index, post in enumerate(self._posts)}
        waiting = {post.id: index for index, post in enumerate(self._pending)}
        newest = self._newest_key()
        arrived: dict[str, PostDocument] = {}

        for document_id in document_ids:
            post = await self._posts_repo.get(document_id)
            if post is None or not post.is_public:
                continue
            if document_id in shown:
                # counters changed on a post already in view
                self._posts[shown[document_id]] = post
            elif document_id in waiting:
                self._pending[waiting[document_id]] = post
            elif newest is None or _sort_key(post) > newest:
                arrived[document_id] = post
            # older posts not paged in yet arrive through load_more

        if arrived:
            fresh = sorted(arrived.values(), key=_sort_key, reverse=True)
            if self._at_top:
                self._posts = [*fresh, *self._posts]
            else:
                self._pending = [*fresh, *self._pending]
        self._emit()

    def _newest_key(self) -> FeedCursor | None:
        keys = [_sort_key(view[0]) for view in (self._pending, self._posts) if view]
        return max(keys) if keys else None

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = ["FeedCursor", "FeedView"]
