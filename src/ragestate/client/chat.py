"""
Chat session: one open conversation as seen by one user.

The session keeps a live window of the newest messages, older pages
fetched on demand, and the user's optimistic sends, and presents them as
a single oldest-first list.

State machine: ``idle -> loading -> {ready, error}``. Opening another chat
or closing the session unsubscribes the live query; results that arrive
for a chat that is no longer open are discarded.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, Protocol
from uuid import UUID, uuid4

from ragestate.client.reconcile import is_temp_id, pending_optimistic, reconcile, temp_id
from ragestate.config import ChatConfig
from ragestate.events.chat import MediaType, MessageCreated, chat_stream
from ragestate.exceptions import MessageValidationError, UnexpectedEventTypeError
from ragestate.projections.chat_summary import ChatSummaryProjector
from ragestate.stores.interface import EventLogStore, ReadDirection, ReadOptions, StoredEvent
from ragestate.stores.live import LiveQuery, Snapshot

logger = logging.getLogger(__name__)

ChatSessionState = Literal["idle", "loading", "ready", "error"]
MessageStatus = Literal["sending", "sent"]


@dataclass(frozen=True)
class SessionUser:
    """The signed-in user a client view acts for."""

    user_id: str
    display_name: str = "Anonymous"
    photo_url: str | None = None


@dataclass(frozen=True)
class MediaAttachment:
    data: bytes
    filename: str
    media_type: MediaType = "image"


class MediaUploader(Protocol):
    """Stores chat media and returns its download URL."""

    async def upload(self, chat_id: str, attachment: MediaAttachment) -> str: ...


@dataclass(frozen=True)
class ChatMessage:
    """A message as rendered in a chat view."""

    id: str
    chat_id: str
    sender_id: str | None
    created_at: datetime
    client_key: str | None = None
    sender_name: str | None = None
    sender_photo: str | None = None
    text: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    status: MessageStatus = "sent"
    stream_position: int | None = None
    flagged: bool = False
    deleted_for: tuple[str, ...] = field(default_factory=tuple)

    @property
    def author_id(self) -> str | None:
        return self.sender_id

    @property
    def content(self) -> str | None:
        return self.text

    @property
    def is_optimistic(self) -> bool:
        return is_temp_id(self.id)

    @classmethod
    def from_stored(cls, stored: StoredEvent) -> "ChatMessage":
        event = stored.event
        if not isinstance(event, MessageCreated):
            raise UnexpectedEventTypeError(event.event_id, "MessageCreated", event.event_type)
        return cls(
            id=event.message_id,
            client_key=event.message_id,
            chat_id=event.chat_id,
            sender_id=event.sender_id,
            sender_name=event.sender_name,
            sender_photo=event.sender_photo,
            text=event.text,
            media_url=event.media_url,
            media_type=event.media_type,
            created_at=stored.stored_at,
            stream_position=stored.stream_position,
            flagged=stored.flagged,
            deleted_for=tuple(stored.deleted_for),
        )


class ChatSession:
    """
    Live, paginated view of one chat with optimistic sends.

    Example:
        >>> session = ChatSession(store, SessionUser("u1", "Ava"), projector=projector)
        >>> await session.open("dm_u1_u2")
        >>> await session.send("hello")
        >>> [m.text for m in session.messages]
        ['hello']
        >>> session.close()
    """

    def __init__(
        self,
        store: EventLogStore,
        user: SessionUser | None,
        *,
        projector: ChatSummaryProjector | None = None,
        uploader: MediaUploader | None = None,
        config: ChatConfig | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._user = user
        self._projector = projector
        self._uploader = uploader
        self._config = config or ChatConfig()
        self._on_change = on_change

        self._chat_id: str | None = None
        self._query: LiveQuery | None = None
        self._generation = 0
        self._state: ChatSessionState = "idle"
        self._error: str | None = None
        self._messages: dict[str, ChatMessage] = {}
        self._optimistic: list[ChatMessage] = []
        self._hidden: set[str] = set()
        self._has_more = True
        self._loading_more = False

    @property
    def chat_id(self) -> str | None:
        return self._chat_id

    @property
    def state(self) -> ChatSessionState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def loading_more(self) -> bool:
        return self._loading_more

    @property
    def cursor(self) -> int | None:
        """Stream position of the oldest message held, the "load more" boundary."""
        positions = [m.stream_position for m in self._messages.values() if m.stream_position]
        return min(positions) if positions else None

    @property
    def messages(self) -> list[ChatMessage]:
        """Visible messages, oldest first, optimistic sends last."""
        user_id = self._user.user_id if self._user else None
        real = sorted(
            (
                m
                for m in self._messages.values()
                if m.id not in self._hidden and (user_id is None or user_id not in m.deleted_for)
            ),
            key=lambda m: m.stream_position or 0,
        )
        return reconcile(real, self._optimistic)

    async def open(self, chat_id: str) -> None:
        if self._chat_id == chat_id and self._query is not None:
            return
        self.close()

        self._generation += 1
        self._chat_id = chat_id
        self._state = "loading"
        self._emit()

        self._query = LiveQuery(
            self._store,
            chat_stream(chat_id),
            limit=self._config.page_size,
            on_snapshot=self._on_snapshot,
            on_error=self._on_query_error,
        )
        await self._query.start()
        await self.mark_read()

    def close(self) -> None:
        if self._query is not None:
            self._query.unsubscribe()
            self._query = None
        self._generation += 1
        self._chat_id = None
        self._state = "idle"
        self._error = None
        self._messages = {}
        self._optimistic = []
        self._hidden = set()
        self._has_more = True
        self._loading_more = False

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        initial = self._state != "ready"
        for stored in snapshot.events:
            if isinstance(stored.event, MessageCreated):
                message = ChatMessage.from_stored(stored)
                self._messages[message.id] = message

        if initial and snapshot.size < self._config.page_size:
            self._has_more = False
        self._optimistic = pending_optimistic(self._messages.values(), self._optimistic)
        self._state = "ready"
        self._error = None
        self._emit()

    def _on_query_error(self, error: Exception) -> None:
        self._state = "error"
        self._error = str(error)
        self._emit()

    async def mark_read(self) -> None:
        """Reset this user's unread count for the open chat. Failures are logged."""
        if self._projector is None or self._user is None or self._chat_id is None:
            return
        try:
            await self._projector.mark_as_read(self._user.user_id, self._chat_id)
        except Exception as e:
            logger.warning(
                "Failed to mark chat %s read: %s",
                self._chat_id,
                e,
                extra={"chat_id": self._chat_id, "user_id": self._user.user_id},
            )

    async def send(self, text: str | None, media: MediaAttachment | None = None) -> str:
        """
        Send a message, showing it immediately as ``sending``.

        Returns:
            The id of the stored message

        Raises:
            MessageValidationError: If no user is signed in, no chat is open,
                or the message has neither text nor media
        """
        if self._user is None:
            raise MessageValidationError("sender", "sign in to send messages")
        if self._chat_id is None:
            raise MessageValidationError("chat_id", "no chat is open")
        body = (text or "").strip() or None
        if body is None and media is None:
            raise MessageValidationError("text", "message is empty")
        if media is not None and self._uploader is None:
            raise MessageValidationError("media", "media upload is not available")

        chat_id = self._chat_id
        message_id = uuid4()
        optimistic = ChatMessage(
            id=temp_id(str(message_id)),
            client_key=str(message_id),
            chat_id=chat_id,
            sender_id=self._user.user_id,
            sender_name=self._user.display_name,
            sender_photo=self._user.photo_url,
            text=body,
            media_type=media.media_type if media else None,
            created_at=datetime.now(UTC),
            status="sending",
        )
        self._optimistic.append(optimistic)
        self._emit()

        try:
            media_url = None
            if media is not None and self._uploader is not None:
                media_url = await self._uploader.upload(chat_id, media)
            await self._store.append(
                MessageCreated(
                    event_id=message_id,
                    chat_id=chat_id,
                    actor_id=self._user.user_id,
                    sender_id=self._user.user_id,
                    sender_name=self._user.display_name,
                    sender_photo=self._user.photo_url,
                    text=body,
                    media_url=media_url,
                    media_type=media.media_type if media else None,
                )
            )
        except Exception as e:
            self._optimistic = [m for m in self._optimistic if m.id != optimistic.id]
            self._error = str(e)
            logger.error(
                "Failed to send message to %s: %s",
                chat_id,
                e,
                extra={"chat_id": chat_id, "message_id": str(message_id)},
            )
            self._emit()
            raise

        return str(message_id)

    async def load_more(self) -> bool:
        """
        Fetch the page of messages before the oldest one held.

        Returns:
            False when rejected (already loading, no more history, nothing
            open yet) or when the chat changed while the page was loading
        """
        cursor = self.cursor
        if self._loading_more or not self._has_more or self._chat_id is None or cursor is None:
            return False

        generation = self._generation
        chat_id = self._chat_id
        self._loading_more = True
        self._emit()
        try:
            page = await self._store.read_stream(
                chat_stream(chat_id),
                ReadOptions(
                    direction=ReadDirection.BACKWARD,
                    limit=self._config.page_size,
                    before_position=cursor,
                ),
            )
        except Exception as e:
            if generation == self._generation:
                self._loading_more = False
                self._error = str(e)
                self._emit()
            logger.error(
                "Failed to load older messages for %s: %s",
                chat_id,
                e,
                extra={"chat_id": chat_id, "cursor": cursor},
            )
            return False

        if generation != self._generation:
            return False

        for stored in page:
            if isinstance(stored.event, MessageCreated):
                message = ChatMessage.from_stored(stored)
                self._messages.setdefault(message.id, message)
        if len(page) < self._config.page_size:
            self._has_more = False
        self._loading_more = False
        self._emit()
        return True

    async def delete_for_me(self, message_id: str) -> None:
        """Hide a message for the current user only."""
        if self._user is None:
            raise MessageValidationError("user", "sign in to delete messages")
        self._hidden.add(message_id)
        self._emit()
        try:
            await self._store.annotate_union(UUID(message_id), "deleted_for", [self._user.user_id])
        except Exception:
            self._hidden.discard(message_id)
            self._emit()
            raise

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = [
    "ChatSessionState",
    "MessageStatus",
    "SessionUser",
    "MediaAttachment",
    "MediaUploader",
    "ChatMessage",
    "ChatSession",
]
