"""Feed log events: posts and their likes and comments."""

from typing import Any

from pydantic import Field

from ragestate.events.base import LogEvent
from ragestate.events.registry import register_event

POSTS_STREAM = "posts"


def likes_stream(post_id: str) -> str:
    return f"posts/{post_id}/likes"


def comments_stream(post_id: str) -> str:
    return f"posts/{post_id}/comments"


@register_event
class PostCreated(LogEvent):
    """A post was published. ``event_id`` is the post id."""

    user_id: str
    user_display_name: str | None = None
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)
    is_public: bool = True

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return POSTS_STREAM

    @property
    def post_id(self) -> str:
        return str(self.event_id)


@register_event
class PostLiked(LogEvent):
    post_id: str
    user_id: str

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return likes_stream(str(data.get("post_id", "")))


@register_event
class PostUnliked(LogEvent):
    post_id: str
    user_id: str

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return likes_stream(str(data.get("post_id", "")))


@register_event
class CommentCreated(LogEvent):
    """A comment was added to a post. ``event_id`` is the comment id."""

    post_id: str
    user_id: str
    user_display_name: str | None = None
    content: str

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return comments_stream(str(data.get("post_id", "")))

    @property
    def comment_id(self) -> str:
        return str(self.event_id)


@register_event
class CommentDeleted(LogEvent):
    post_id: str
    comment_id: str
    user_id: str

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        return comments_stream(str(data.get("post_id", "")))


__all__ = [
    "POSTS_STREAM",
    "likes_stream",
    "comments_stream",
    "PostCreated",
    "PostLiked",
    "PostUnliked",
    "CommentCreated",
    "CommentDeleted",
]
