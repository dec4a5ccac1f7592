"""
Base classes for projectors.

Projectors play the role of document-create triggers: the event bus hands
them every newly stored event they subscribe to, and they maintain the
denormalized read models derived from it.

Triggers never raise. A handler failure is logged and recorded on the
span, and ``handle`` returns None, so a partially applied fan-out is never
replayed wholesale.
"""

import logging
from abc import ABC, abstractmethod

from ragestate.events.base import LogEvent
from ragestate.handlers.registry import HandlerRegistry, UnregisteredEventHandling
from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_EVENT_ID,
    ATTR_EVENT_TYPE,
    ATTR_HANDLER_NAME,
    ATTR_HANDLER_SUCCESS,
    ATTR_PROJECTION_NAME,
)

logger = logging.getLogger(__name__)


class Projection(ABC):
    """
    Base class for projections.

    Subclasses must implement:
    - handle(): Process a single event
    - reset(): Clear all read model data
    """

    @abstractmethod
    async def handle(self, event: LogEvent) -> None:
        pass

    @abstractmethod
    async def reset(self) -> None:
        pass


class DeclarativeProjection(Projection):
    """
    Projection that routes events to ``@handles`` methods.

    Example:
        >>> class PostCounterProjector(DeclarativeProjection):
        ...     @handles(PostLiked)
        ...     async def _on_post_liked(self, event: PostLiked) -> None:
        ...         ...
        ...
        ...     async def reset(self) -> None:
        ...         ...
        >>> bus.subscribe_all(PostCounterProjector(...))
    """

    unregistered_event_handling: UnregisteredEventHandling = "ignore"

    def __init__(
        self,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = False,
    ) -> None:
        """
        Args:
            tracer: Optional custom Tracer instance
            enable_tracing: Emit OpenTelemetry spans. Off by default for
                high-frequency projectors.
        """
        self._handler_registry = HandlerRegistry(
            self,
            unregistered_event_handling=self.unregistered_event_handling,
        )
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._projection_name = self.__class__.__name__

    @property
    def projection_name(self) -> str:
        return self._projection_name

    def subscribed_to(self) -> list[type[LogEvent]]:
        return self._handler_registry.get_subscribed_events()

    async def handle(self, event: LogEvent) -> None:
        with self._tracer.span(
            "ragestate.projection.handle",
            {
                ATTR_PROJECTION_NAME: self._projection_name,
                ATTR_EVENT_TYPE: event.event_type,
                ATTR_EVENT_ID: str(event.event_id),
            },
        ) as span:
            try:
                await self._process_event(event)
                if span is not None:
                    span.set_attribute(ATTR_HANDLER_SUCCESS, True)
            except Exception as e:
                if span is not None:
                    span.set_attribute(ATTR_HANDLER_SUCCESS, False)
                    span.record_exception(e)
                logger.error(
                    "%s failed on %s %s: %s",
                    self._projection_name,
                    event.event_type,
                    event.event_id,
                    e,
                    exc_info=True,
                    extra={
                        "projection": self._projection_name,
                        "event_id": str(event.event_id),
                        "event_type": event.event_type,
                        "error": str(e),
                    },
                )
        return None

    async def _process_event(self, event: LogEvent) -> None:
        handler_info = self._handler_registry.get_handler(type(event))
        if handler_info is None:
            await self._handler_registry.dispatch(event)
            return

        with self._tracer.span(
            "ragestate.projection.handler",
            {
                ATTR_PROJECTION_NAME: self._projection_name,
                ATTR_EVENT_TYPE: event.event_type,
                ATTR_HANDLER_NAME: handler_info.handler_name,
            },
        ):
            await self._handler_registry.dispatch(event)


__all__ = ["Projection", "DeclarativeProjection"]
