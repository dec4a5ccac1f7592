"""
Event handler decorators.

The @handles decorator marks a projection method as the handler for one
event type; DeclarativeProjection discovers the marked methods at
construction time.

Example:
    >>> from ragestate.handlers import handles
    >>>
    >>> class PostCounterProjector(DeclarativeProjection):
    ...     @handles(PostLiked)
    ...     async def _on_liked(self, event: PostLiked) -> None:
    ...         ...
"""

from collections.abc import Callable
from typing import Any, TypeVar

from ragestate.events.base import LogEvent

F = TypeVar("F", bound=Callable[..., Any])


def handles(event_type: type[LogEvent]) -> Callable[[F], F]:
    """
    Decorator to mark a method as an event handler for a specific event type.

    Handler signature: ``async def handler(self, event: EventType) -> None``.
    Signatures are validated when the owning projection is constructed.

    Args:
        event_type: The LogEvent subclass this handler processes
    """

    def decorator(func: F) -> F:
        func._handles_event_type = event_type  # type: ignore[attr-defined]
        return func

    return decorator


def get_handled_event_type(func: Callable[..., Any]) -> type[LogEvent] | None:
    """Get the event type handled by a decorated function, or None."""
    return getattr(func, "_handles_event_type", None)


def is_event_handler(func: Callable[..., Any]) -> bool:
    return hasattr(func, "_handles_event_type")


__all__ = [
    "handles",
    "get_handled_event_type",
    "is_event_handler",
]
