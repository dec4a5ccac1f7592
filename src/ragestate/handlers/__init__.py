"""Event handler discovery, adaptation and routing."""

from ragestate.handlers.adapter import HandlerAdapter, get_handler_name
from ragestate.handlers.decorators import (
    get_handled_event_type,
    handles,
    is_event_handler,
)
from ragestate.handlers.registry import (
    HandlerInfo,
    HandlerRegistry,
    HandlerSignatureError,
    UnregisteredEventHandling,
)

__all__ = [
    "handles",
    "get_handled_event_type",
    "is_event_handler",
    "HandlerAdapter",
    "get_handler_name",
    "HandlerRegistry",
    "HandlerInfo",
    "HandlerSignatureError",
    "UnregisteredEventHandling",
]
