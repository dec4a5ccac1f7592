"""
Base class for read model documents.

Read models are denormalized documents derived from the event log (chat
summaries, post counters) or written once by a service (purchases). They
are stored by document path and are mutable, unlike log events.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class ReadModel(BaseModel):
    """
    Base class for read model documents.

    Attributes:
        id: Document path (e.g. ``users/u1/chatSummaries/dm_u1_u2``)
        created_at: When the document was first written
        updated_at: When the document was last written (auto-managed)
        version: Write counter, incremented by the repository on every write
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

    id: str = Field(..., min_length=1, description="Document path")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    version: int = Field(default=1, ge=1)


__all__ = ["ReadModel"]
