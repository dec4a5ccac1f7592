"""
Observability utilities for ragestate.

Composition-based tracing: components accept an optional ``tracer`` and
fall back to ``create_tracer(__name__, enable_tracing)``.
"""

from ragestate.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION,
    ATTR_CHAT_ID,
    ATTR_DB_SYSTEM,
    ATTR_DOCUMENT_ID,
    ATTR_ERROR_TYPE,
    ATTR_EVENT_COUNT,
    ATTR_EVENT_ID,
    ATTR_EVENT_TYPE,
    ATTR_HANDLER_COUNT,
    ATTR_HANDLER_NAME,
    ATTR_HANDLER_SUCCESS,
    ATTR_LIMIT,
    ATTR_ORDER_NUMBER,
    ATTR_PAYMENT_INTENT_ID,
    ATTR_POSITION,
    ATTR_POST_ID,
    ATTR_PROJECTION_NAME,
    ATTR_RECIPIENT_COUNT,
    ATTR_RETRY_COUNT,
    ATTR_STREAM_ID,
    ATTR_USER_ID,
)
from ragestate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_BATCH_SIZE",
    "ATTR_COLLECTION",
    "ATTR_CHAT_ID",
    "ATTR_DB_SYSTEM",
    "ATTR_DOCUMENT_ID",
    "ATTR_ERROR_TYPE",
    "ATTR_EVENT_COUNT",
    "ATTR_EVENT_ID",
    "ATTR_EVENT_TYPE",
    "ATTR_HANDLER_COUNT",
    "ATTR_HANDLER_NAME",
    "ATTR_HANDLER_SUCCESS",
    "ATTR_LIMIT",
    "ATTR_ORDER_NUMBER",
    "ATTR_PAYMENT_INTENT_ID",
    "ATTR_POSITION",
    "ATTR_POST_ID",
    "ATTR_PROJECTION_NAME",
    "ATTR_RECIPIENT_COUNT",
    "ATTR_RETRY_COUNT",
    "ATTR_STREAM_ID",
    "ATTR_USER_ID",
]
