"""
Chat log events.

Chats live in the ``chats`` stream; each chat's messages form their own
``chats/{chat_id}/messages`` stream.
"""

from typing import Any, Literal

from pydantic import Field

from ragestate.events.base import LogEvent
from ragestate.events.registry import register_event

ChatType = Literal["dm", "event", "group"]
MediaType = Literal["image", "video"]


def chat_stream(chat_id: str) -> str:
    """Stream id holding a chat's messages."""
    return f"chats/{chat_id}/messages"


@register_event
class ChatCreated(LogEvent):
    """
    A chat document was created.

    Event chats reference the ticketed event they belong to through
    ``linked_event_id``/``linked_event_name``.
    """

    chat_id: str
    chat_type: ChatType = "dm"
    members: list[str] = Field(default_factory=list)
    linked_event_id: str | None = None
    linked_event_name: str | None = None

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return "chats"


@register_event
class MessageCreated(LogEvent):
    """
    A message was written to a chat.

    The writer chooses ``event_id`` before sending, so it doubles as the
    message id and as the key that matches an optimistic copy to its
    stored counterpart.
    """

    chat_id: str
    sender_id: str | None = None
    sender_name: str | None = None
    sender_photo: str | None = None
    text: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return chat_stream(str(data.get("chat_id", "")))

    @property
    def message_id(self) -> str:
        return str(self.event_id)


__all__ = [
    "ChatType",
    "MediaType",
    "chat_stream",
    "ChatCreated",
    "MessageCreated",
]
