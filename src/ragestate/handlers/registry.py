"""
Handler registry for @handles-decorated methods.

HandlerRegistry scans an owner object for decorated methods, validates
their signatures, and routes events to them.

Example:
    >>> class ChatSummaryProjector:
    ...     @handles(ChatCreated)
    ...     async def _on_chat_created(self, event: ChatCreated) -> None:
    ...         pass
    >>>
    >>> registry = HandlerRegistry(ChatSummaryProjector())
    >>> registry.get_subscribed_events()
    [<class 'ChatCreated'>]
"""

import inspect
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Literal

from ragestate.events.base import LogEvent
from ragestate.exceptions import UnhandledEventError
from ragestate.handlers.decorators import get_handled_event_type

logger = logging.getLogger(__name__)

UnregisteredEventHandling = Literal["ignore", "warn", "error"]


class HandlerSignatureError(ValueError):
    """Raised when a @handles method does not take exactly one event parameter."""

    def __init__(
        self,
        handler_name: str,
        owner_name: str,
        event_type: type[LogEvent],
        param_count: int,
    ) -> None:
        self.handler_name = handler_name
        self.owner_name = owner_name
        self.event_type = event_type
        self.param_count = param_count
        super().__init__(
            f"Handler '{handler_name}' in {owner_name} has {param_count} parameter(s).\n\n"
            f"Expected:\n"
            f"  async def {handler_name}(self, event: {event_type.__name__}) -> None"
        )


@dataclass
class HandlerInfo:
    """
    Metadata about a registered event handler.

    Attributes:
        event_type: The LogEvent subclass this handler processes
        handler_name: Name of the handler method
        handler: The bound handler coroutine function
    """

    event_type: type[LogEvent]
    handler_name: str
    handler: Callable[[Any], Coroutine[Any, Any, None]]


class HandlerRegistry:
    """Registry for discovering, validating, and routing event handlers."""

    def __init__(
        self,
        owner: Any,
        *,
        unregistered_event_handling: UnregisteredEventHandling = "ignore",
    ) -> None:
        """
        Initialize the handler registry.

        Args:
            owner: The object containing @handles decorated methods
            unregistered_event_handling: How to treat events with no handler
                ("ignore", "warn", or "error")

        Raises:
            HandlerSignatureError: If a handler has the wrong parameter count
            ValueError: If a handler is not async
        """
        self._owner = owner
        self._owner_name = owner.__class__.__name__
        self._unregistered_event_handling = unregistered_event_handling
        self._handlers: dict[type[LogEvent], HandlerInfo] = {}
        self._discover_handlers()

    def _discover_handlers(self) -> None:
        for attr_name in dir(type(self._owner)):
            if attr_name.startswith("__"):
                continue

            event_type = get_handled_event_type(getattr(type(self._owner), attr_name, None))
            if not isinstance(event_type, type):
                continue

            handler = getattr(self._owner, attr_name)
            if not inspect.iscoroutinefunction(handler):
                raise ValueError(
                    f"Handler '{attr_name}' in {self._owner_name} must be async.\n\n"
                    f"Change:\n"
                    f"  def {attr_name}(self, ...)\n\n"
                    f"To:\n"
                    f"  async def {attr_name}(self, event: {event_type.__name__}) -> None"
                )

            param_count = len(inspect.signature(handler).parameters)
            if param_count != 1:
                raise HandlerSignatureError(attr_name, self._owner_name, event_type, param_count)

            self._handlers[event_type] = HandlerInfo(
                event_type=event_type,
                handler_name=attr_name,
                handler=handler,
            )
            logger.debug(
                "Registered handler %s for %s",
                attr_name,
                event_type.__name__,
                extra={
                    "owner": self._owner_name,
                    "handler": attr_name,
                    "event_type": event_type.__name__,
                },
            )

    def get_handler(self, event_type: type[LogEvent]) -> HandlerInfo | None:
        return self._handlers.get(event_type)

    def get_subscribed_events(self) -> list[type[LogEvent]]:
        return list(self._handlers)

    async def dispatch(self, event: LogEvent) -> bool:
        """
        Dispatch an event to its registered handler.

        Returns:
            True if a handler ran, False if none is registered

        Raises:
            UnhandledEventError: If unregistered_event_handling="error" and no handler
        """
        handler_info = self._handlers.get(type(event))
        if handler_info is None:
            self._handle_unregistered_event(event)
            return False

        await handler_info.handler(event)
        return True

    def _handle_unregistered_event(self, event: LogEvent) -> None:
        available_handlers = [et.__name__ for et in self._handlers]

        if self._unregistered_event_handling == "error":
            raise UnhandledEventError(
                event_type=event.event_type,
                event_id=event.event_id,
                handler_class=self._owner_name,
                available_handlers=available_handlers,
            )
        elif self._unregistered_event_handling == "warn":
            logger.warning(
                "No handler registered for event type %s in %s. Available handlers: %s.",
                event.event_type,
                self._owner_name,
                ", ".join(available_handlers) if available_handlers else "none",
                extra={
                    "owner": self._owner_name,
                    "event_type": event.event_type,
                    "event_id": str(event.event_id),
                },
            )

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"HandlerRegistry({self._owner_name}, handlers={self.handler_count})"


__all__ = [
    "HandlerRegistry",
    "HandlerInfo",
    "HandlerSignatureError",
    "UnregisteredEventHandling",
]
