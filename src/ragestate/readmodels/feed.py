"""Feed read models."""

from datetime import datetime

from pydantic import Field

from ragestate.readmodels.base import ReadModel


def post_document_id(post_id: str) -> str:
    return f"posts/{post_id}"


class PostDocument(ReadModel):
    """
    A post with its aggregate counters.

    ``like_count`` and ``comment_count`` are eventually consistent with the
    post's like and comment streams; ``PostCounterProjector.reconcile``
    brings them back in line.
    """

    post_id: str
    user_id: str
    user_display_name: str | None = None
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)
    is_public: bool = True
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    timestamp: datetime


__all__ = ["PostDocument", "post_document_id"]
