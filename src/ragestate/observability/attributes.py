"""
Standard span attributes for ragestate.

Attribute constants used across components so span names and attributes
stay consistent.

Example:
    >>> from ragestate.observability.attributes import ATTR_CHAT_ID
    >>>
    >>> with tracer.span("ragestate.projection.fanout", {ATTR_CHAT_ID: chat_id}):
    ...     pass
"""

# =============================================================================
# Event Attributes
# =============================================================================

ATTR_EVENT_ID = "ragestate.event.id"
"""Unique identifier for the event (UUID string)."""

ATTR_EVENT_TYPE = "ragestate.event.type"
"""Type name of the event (e.g., 'MessageCreated')."""

ATTR_EVENT_COUNT = "ragestate.event.count"
"""Number of events in an operation (integer)."""

# =============================================================================
# Stream Attributes
# =============================================================================

ATTR_STREAM_ID = "ragestate.stream.id"
"""Log stream identifier (e.g., 'chats/dm_a_b/messages')."""

ATTR_POSITION = "ragestate.position"
"""Stream or global position (integer)."""

ATTR_LIMIT = "ragestate.limit"
"""Maximum number of records requested (integer)."""

# =============================================================================
# Domain Attributes
# =============================================================================

ATTR_CHAT_ID = "ragestate.chat.id"
"""Chat identifier."""

ATTR_USER_ID = "ragestate.user.id"
"""User identifier."""

ATTR_POST_ID = "ragestate.post.id"
"""Post identifier."""

ATTR_DOCUMENT_ID = "ragestate.document.id"
"""Read model document path."""

ATTR_COLLECTION = "ragestate.document.collection"
"""Name of the read model collection."""

ATTR_BATCH_SIZE = "ragestate.batch.size"
"""Number of writes in an atomic batch (integer)."""

ATTR_RECIPIENT_COUNT = "ragestate.fanout.recipient_count"
"""Number of recipients a fan-out targets (integer)."""

ATTR_PAYMENT_INTENT_ID = "ragestate.payment_intent.id"
"""Payment intent identifier."""

ATTR_ORDER_NUMBER = "ragestate.order.number"
"""Order number assigned at finalization."""

# =============================================================================
# Handler Attributes
# =============================================================================

ATTR_PROJECTION_NAME = "ragestate.projection.name"
"""Name of the projection handling an event."""

ATTR_HANDLER_NAME = "ragestate.handler.name"
"""Name of the handler method or callable."""

ATTR_HANDLER_COUNT = "ragestate.handler.count"
"""Number of handlers invoked (integer)."""

ATTR_HANDLER_SUCCESS = "ragestate.handler.success"
"""Whether a handler completed without error (boolean)."""

ATTR_RETRY_COUNT = "ragestate.retry.count"
"""Number of attempts made (integer)."""

ATTR_ERROR_TYPE = "ragestate.error.type"
"""Error description, truncated."""

ATTR_DB_SYSTEM = "db.system"
"""Storage backend (OpenTelemetry semantic convention)."""


__all__ = [
    "ATTR_EVENT_ID",
    "ATTR_EVENT_TYPE",
    "ATTR_EVENT_COUNT",
    "ATTR_STREAM_ID",
    "ATTR_POSITION",
    "ATTR_LIMIT",
    "ATTR_CHAT_ID",
    "ATTR_USER_ID",
    "ATTR_POST_ID",
    "ATTR_DOCUMENT_ID",
    "ATTR_COLLECTION",
    "ATTR_BATCH_SIZE",
    "ATTR_RECIPIENT_COUNT",
    "ATTR_PAYMENT_INTENT_ID",
    "ATTR_ORDER_NUMBER",
    "ATTR_PROJECTION_NAME",
    "ATTR_HANDLER_NAME",
    "ATTR_HANDLER_COUNT",
    "ATTR_HANDLER_SUCCESS",
    "ATTR_RETRY_COUNT",
    "ATTR_ERROR_TYPE",
    "ATTR_DB_SYSTEM",
]
