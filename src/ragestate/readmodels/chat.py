"""
Chat read models.

Each chat member owns one summary document per chat at
``users/{uid}/chatSummaries/{chatId}``. Summaries are a tagged union on
``type`` and are validated with ``parse_chat_summary`` wherever they are
read from untyped data.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from ragestate.events.chat import ChatType
from ragestate.readmodels.base import ReadModel


def summary_id(user_id: str, chat_id: str) -> str:
    """Document path of a member's summary for a chat."""
    return f"users/{user_id}/chatSummaries/{chat_id}"


def chat_document_id(chat_id: str) -> str:
    return f"chats/{chat_id}"


class LastMessage(BaseModel):
    """
    Snapshot of the newest message in a chat.

    ``text`` holds a placeholder ("Sent an image") for media-only messages.
    """

    text: str = ""
    sender_id: str
    sender_name: str = "Unknown"
    created_at: datetime
    type: Literal["text", "media"] = "text"


class _ChatSummaryFields(ReadModel):
    user_id: str
    chat_id: str
    last_message: LastMessage | None = None
    unread_count: int = Field(default=0, ge=0)
    muted: bool = False
    read_through: int = Field(
        default=0,
        ge=0,
        description="Stream position of the newest message the member has read",
    )


class DmChatSummary(_ChatSummaryFields):
    """A member's view of a direct message chat."""

    type: Literal["dm"] = "dm"
    peer_id: str
    peer_name: str = "Anonymous"
    peer_photo: str | None = None


class EventChatSummary(_ChatSummaryFields):
    """A member's view of a ticketed event's group chat."""

    type: Literal["event"] = "event"
    linked_event_id: str
    linked_event_name: str | None = None


ChatSummary = Annotated[DmChatSummary | EventChatSummary, Field(discriminator="type")]

_chat_summary_adapter: TypeAdapter[DmChatSummary | EventChatSummary] = TypeAdapter(ChatSummary)


def parse_chat_summary(data: Any) -> DmChatSummary | EventChatSummary:
    """
    Validate raw summary data into its tagged variant.

    Raises:
        pydantic.ValidationError: If ``type`` is missing or unknown, or a
            variant's required field is absent
    """
    return _chat_summary_adapter.validate_python(data)


class ChatDocument(ReadModel):
    """The parent ``chats/{chatId}`` document."""

    chat_id: str
    type: ChatType = "dm"
    members: list[str] = Field(default_factory=list)
    last_message: LastMessage | None = None
    is_active: bool = True
    linked_event_id: str | None = None
    linked_event_name: str | None = None

    @property
    def member_count(self) -> int:
        return len(self.members)


__all__ = [
    "summary_id",
    "chat_document_id",
    "LastMessage",
    "DmChatSummary",
    "EventChatSummary",
    "ChatSummary",
    "parse_chat_summary",
    "ChatDocument",
]
