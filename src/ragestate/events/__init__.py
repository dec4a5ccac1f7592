"""Log events and the event type registry."""

from ragestate.events.base import LogEvent
from ragestate.events.chat import ChatCreated, MessageCreated, chat_stream
from ragestate.events.feed import (
    POSTS_STREAM,
    CommentCreated,
    CommentDeleted,
    PostCreated,
    PostLiked,
    PostUnliked,
    comments_stream,
    likes_stream,
)
from ragestate.events.registry import (
    DuplicateEventTypeError,
    EventRegistry,
    EventTypeNotFoundError,
    default_registry,
    get_event_class,
    register_event,
)

__all__ = [
    "LogEvent",
    # Chat
    "ChatCreated",
    "MessageCreated",
    "chat_stream",
    # Feed
    "POSTS_STREAM",
    "PostCreated",
    "PostLiked",
    "PostUnliked",
    "CommentCreated",
    "CommentDeleted",
    "likes_stream",
    "comments_stream",
    # Registry
    "EventRegistry",
    "EventTypeNotFoundError",
    "DuplicateEventTypeError",
    "default_registry",
    "get_event_class",
    "register_event",
]
