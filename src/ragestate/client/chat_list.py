"""
Chat list: the signed-in user's chat summaries, newest activity first.
"""

import logging
from collections.abc import Callable
from typing import Literal

from ragestate.config import ChatConfig
from ragestate.events.chat import ChatCreated
from ragestate.exceptions import ValidationError
from ragestate.projections.chat_summary import ChatSummaryDocument
from ragestate.readmodels.chat import ChatDocument, DmChatSummary, chat_document_id
from ragestate.readmodels.in_memory import InMemoryDocumentRepository
from ragestate.stores.interface import EventLogStore

logger = logging.getLogger(__name__)

ChatListState = Literal["idle", "loading", "ready", "error"]


def get_dm_chat_id(user_a: str, user_b: str) -> str:
    """Deterministic chat id for the DM between two users."""
    return "dm_" + "_".join(sorted([user_a, user_b]))


async def start_dm(
    store: EventLogStore,
    chats: InMemoryDocumentRepository[ChatDocument],
    current_user_id: str,
    peer_id: str,
) -> str:
    """
    Return the DM chat between two users, creating it if needed.

    A new chat gets its document and a ``ChatCreated`` event; the summary
    projector creates both members' summaries from that event.

    Raises:
        ValidationError: If either id is empty or the users are the same
    """
    if not current_user_id or not peer_id:
        raise ValidationError("members", "both users are required")
    if current_user_id == peer_id:
        raise ValidationError("peer_id", "cannot start a chat with yourself")

    chat_id = get_dm_chat_id(current_user_id, peer_id)
    if await chats.exists(chat_document_id(chat_id)):
        return chat_id

    members = sorted([current_user_id, peer_id])
    await chats.save(
        ChatDocument(id=chat_document_id(chat_id), chat_id=chat_id, type="dm", members=members)
    )
    await store.append(
        ChatCreated(chat_id=chat_id, chat_type="dm", members=members, actor_id=current_user_id)
    )
    logger.info(
        "Created DM chat %s",
        chat_id,
        extra={"chat_id": chat_id, "user_id": current_user_id, "peer_id": peer_id},
    )
    return chat_id


class ChatListView:
    """
    Live list of one user's chat summaries.

    Example:
        >>> view = ChatListView(summaries, "u1")
        >>> await view.start()
        >>> view.total_unread, view.badge_count
        (3, 1)
        >>> view.close()
    """

    def __init__(
        self,
        summaries: InMemoryDocumentRepository[ChatSummaryDocument],
        user_id: str,
        *,
        config: ChatConfig | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._summaries = summaries
        self._user_id = user_id
        self._config = config or ChatConfig()
        self._on_change = on_change
        self._prefix = f"users/{user_id}/chatSummaries/"
        self._chats: list[ChatSummaryDocument] = []
        self._state: ChatListState = "idle"
        self._error: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> ChatListState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def chats(self) -> list[ChatSummaryDocument]:
        return list(self._chats)

    @property
    def total_unread(self) -> int:
        return sum(chat.unread_count for chat in self._chats)

    @property
    def badge_count(self) -> int:
        """Unread messages in chats the user has not muted."""
        return sum(chat.unread_count for chat in self._chats if not chat.muted)

    async def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._state = "loading"
        self._unsubscribe = self._summaries.watch(self._on_documents_changed)
        await self.refresh()

    async def refresh(self) -> None:
        try:
            self._chats = await self._summaries.find(
                lambda summary: summary.id.startswith(self._prefix),
                order_by="updated_at",
                descending=True,
                limit=self._config.chat_list_limit,
            )
        except Exception as e:
            self._state = "error"
            self._error = str(e)
            logger.error(
                "Failed to load chat list for %s: %s",
                self._user_id,
                e,
                extra={"user_id": self._user_id},
            )
        else:
            self._state = "ready"
            self._error = None
        if self._on_change is not None:
            self._on_change()

    async def _on_documents_changed(self, document_ids: list[str]) -> None:
        if any(document_id.startswith(self._prefix) for document_id in document_ids):
            await self.refresh()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._state = "idle"

    def recent_dm_contacts(self, max_count: int | None = None) -> list[DmChatSummary]:
        """DM chats with a known peer, most recent first."""
        if max_count is None:
            max_count = self._config.recent_contacts_limit
        contacts = [
            chat
            for chat in self._chats
            if isinstance(chat, DmChatSummary) and chat.peer_id and chat.peer_name
        ]
        return contacts[:max_count]

    def existing_dm_peer_ids(self) -> set[str]:
        return {
            chat.peer_id for chat in self._chats if isinstance(chat, DmChatSummary) and chat.peer_id
        }


__all__ = ["ChatListState", "ChatListView", "get_dm_chat_id", "start_dm"]
