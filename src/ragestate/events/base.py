"""
Base class for log events.

Log events are immutable records appended to a stream of the event log
(a chat's messages, the posts collection, a post's likes). Ordering is
assigned by the store at append time, never by the writer.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Self
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class LogEvent(BaseModel):
    """
    Base class for all log events with automatic event_type derivation.

    Subclasses declare their payload fields and implement ``stream_for`` to
    name the stream they belong to. ``event_type`` defaults to the class name.

    Attributes:
        event_id: Unique identifier for this event instance (the idempotency key)
        event_type: Type name of the event (auto-derived from class name)
        event_version: Schema version for this event type
        occurred_at: Client-side time the event was produced (UTC)
        stream_id: Log stream this event is appended to
        actor_id: User that triggered this event
        metadata: Additional event metadata dictionary

    Example:
        >>> class PostCreated(LogEvent):
        ...     post_id: str
        ...
        ...     @classmethod
        ...     def stream_for(cls, data):
        ...         return "posts"
        >>> event = PostCreated(post_id="p1")
        >>> assert event.event_type == "PostCreated"
        >>> assert event.stream_id == "posts"
    """

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier",
    )
    event_type: str = Field(
        default="",
        description="Type of event (auto-derived from class name if not set)",
    )
    event_version: int = Field(
        default=1,
        ge=1,
        description="Event schema version",
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When event occurred on the writer (UTC)",
    )
    stream_id: str = Field(
        default="",
        description="Log stream this event belongs to",
    )
    actor_id: str | None = Field(
        default=None,
        description="User that triggered this event",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event metadata",
    )

    @classmethod
    def stream_for(cls, data: dict[str, Any]) -> str:
        """
        Name the stream for an event built from ``data``.

        Subclasses override this; the base has no stream of its own.
        """
        return ""

    @model_validator(mode="before")
    @classmethod
    def _fill_derived_fields(cls, data: Any) -> Any:
        """Populate event_type and stream_id when the caller leaves them empty."""
        if isinstance(data, dict):
            if not data.get("event_type"):
                data = dict(data)
                data["event_type"] = cls.__name__
            if not data.get("stream_id"):
                data = dict(data)
                data["stream_id"] = cls.stream_for(data)
        return data

    def __str__(self) -> str:
        return f"{self.event_type}(event_id={self.event_id}, stream_id={self.stream_id})"

    def with_metadata(self, **kwargs: Any) -> Self:
        """
        Create a copy of this event with additional metadata.

        Example:
            >>> enriched = event.with_metadata(request_id="abc123")
            >>> assert enriched.metadata["request_id"] == "abc123"
        """
        return self.model_copy(update={"metadata": {**self.metadata, **kwargs}})

    def to_dict(self) -> dict[str, Any]:
        """Convert event to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """
        Create event from dictionary.

        Raises:
            pydantic.ValidationError: If data doesn't match event schema
        """
        return cls.model_validate(data)


__all__ = ["LogEvent"]
