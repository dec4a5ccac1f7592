"""
Handler adapter for normalizing event handlers.

Accepts objects with a ``handle()`` method or plain callables, sync or
async, and exposes them through one async ``handle(event)``.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ragestate.events.base import LogEvent

logger = logging.getLogger(__name__)

AsyncHandlerFunc = Callable[[LogEvent], Awaitable[None]]


def get_handler_name(handler: Any) -> str:
    """Descriptive name for a handler, for logs and spans."""
    if inspect.isfunction(handler) or inspect.ismethod(handler):
        return str(handler.__qualname__)
    return type(handler).__name__


class HandlerAdapter:
    """
    Adapter that normalizes event handlers to a consistent async interface.

    Two adapters compare equal when they wrap equal handlers (the same
    object or the same bound method); unsubscribe relies on this.

    Example:
        >>> adapter = HandlerAdapter(projector)  # object with async handle()
        >>> await adapter.handle(event)
        >>> adapter = HandlerAdapter(lambda event: seen.append(event))
        >>> await adapter.handle(event)
    """

    def __init__(self, handler: Any) -> None:
        if hasattr(handler, "handle"):
            target = handler.handle
        elif callable(handler):
            target = handler
        else:
            raise TypeError(
                f"Handler must be callable or have a handle() method, got {type(handler).__name__}"
            )
        self._original = handler
        self._target = target
        self._name = get_handler_name(handler)

    @property
    def name(self) -> str:
        return self._name

    @property
    def original(self) -> Any:
        return self._original

    async def handle(self, event: LogEvent) -> None:
        result = self._target(event)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            await result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HandlerAdapter):
            return NotImplemented
        return bool(self._original == other._original)

    def __hash__(self) -> int:
        return hash(self._original)

    def __repr__(self) -> str:
        return f"HandlerAdapter({self._name})"


__all__ = ["HandlerAdapter", "AsyncHandlerFunc", "get_handler_name"]
