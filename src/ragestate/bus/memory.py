"""In-memory event bus implementation.

Distributes newly stored log events to projectors in the same process.
This is the stand-in for document-create triggers: a store configured with
the bus as its publisher fires every subscribed handler after commit.
"""

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any

from ragestate.bus.interface import EventBus, EventSubscriber
from ragestate.events.base import LogEvent
from ragestate.handlers.adapter import HandlerAdapter
from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_EVENT_COUNT,
    ATTR_EVENT_ID,
    ATTR_EVENT_TYPE,
    ATTR_HANDLER_COUNT,
    ATTR_HANDLER_NAME,
    ATTR_HANDLER_SUCCESS,
    ATTR_STREAM_ID,
)

logger = logging.getLogger(__name__)


class InMemoryEventBus(EventBus):
    """
    In-memory event bus for event distribution.

    Features:
    - Thread-safe subscription management
    - Sync and async handlers
    - Wildcard subscriptions
    - Error isolation: a failing handler never stops the others
    - Background publishing with tracked tasks

    Example:
        >>> bus = InMemoryEventBus()
        >>> bus.subscribe(MessageCreated, on_message)
        >>> await bus.publish([MessageCreated(chat_id="dm_a_b", sender_id="a", text="hi")])
    """

    def __init__(
        self,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._subscribers: dict[type[LogEvent], list[HandlerAdapter]] = defaultdict(list)
        self._all_event_handlers: list[HandlerAdapter] = []
        self._lock = threading.RLock()
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._stats = {
            "events_published": 0,
            "handlers_invoked": 0,
            "handler_errors": 0,
            "background_tasks_created": 0,
            "background_tasks_completed": 0,
        }

        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    async def publish(
        self,
        events: list[LogEvent],
        background: bool = False,
    ) -> None:
        if not events:
            return

        if background:
            task = asyncio.create_task(self._publish_all(events))
            task.add_done_callback(self._on_background_task_done)
            self._background_tasks.add(task)
            self._stats["background_tasks_created"] += 1
            logger.debug(
                "Scheduled background publishing of %d event(s)",
                len(events),
                extra={"event_count": len(events)},
            )
        else:
            await self._publish_all(events)

    def _on_background_task_done(self, task: asyncio.Task[None]) -> None:
        self._background_tasks.discard(task)
        self._stats["background_tasks_completed"] += 1

        if not task.cancelled():
            exc = task.exception()
            if exc:
                logger.error("Background publishing task failed: %s", exc, exc_info=exc)

    async def _publish_all(self, events: list[LogEvent]) -> None:
        with self._tracer.span(
            "ragestate.event_bus.publish",
            {ATTR_EVENT_COUNT: len(events)},
        ):
            for event in events:
                await self._dispatch_event(event)
                self._stats["events_published"] += 1

    async def _dispatch_event(self, event: LogEvent) -> None:
        event_type = type(event)

        with self._lock:
            specific_handlers = list(self._subscribers.get(event_type, []))
            wildcard_handlers = list(self._all_event_handlers)

        handlers = specific_handlers + wildcard_handlers

        if not handlers:
            logger.debug(
                "No handlers registered for event type: %s",
                event_type.__name__,
                extra={"event_type": event_type.__name__},
            )
            return

        logger.debug(
            "Dispatching %s to %d handler(s)",
            event_type.__name__,
            len(handlers),
            extra={
                "event_type": event_type.__name__,
                "event_id": str(event.event_id),
                "stream_id": event.stream_id,
                "handler_count": len(handlers),
            },
        )

        with self._tracer.span(
            "ragestate.event_bus.dispatch",
            {
                ATTR_EVENT_TYPE: event_type.__name__,
                ATTR_EVENT_ID: str(event.event_id),
                ATTR_STREAM_ID: event.stream_id,
                ATTR_HANDLER_COUNT: len(handlers),
            },
        ):
            await self._invoke_handlers(handlers, event)

    async def _invoke_handlers(self, handlers: list[HandlerAdapter], event: LogEvent) -> None:
        tasks = [self._safe_handle(adapter, event) for adapter in handlers]
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _safe_handle(self, adapter: HandlerAdapter, event: LogEvent) -> None:
        with self._tracer.span(
            "ragestate.event_bus.handle",
            {
                ATTR_EVENT_TYPE: event.event_type,
                ATTR_EVENT_ID: str(event.event_id),
                ATTR_HANDLER_NAME: adapter.name,
            },
        ) as span:
            try:
                await adapter.handle(event)
                if span:
                    span.set_attribute(ATTR_HANDLER_SUCCESS, True)
                self._stats["handlers_invoked"] += 1
            except Exception as e:
                if span:
                    span.set_attribute(ATTR_HANDLER_SUCCESS, False)
                    span.record_exception(e)
                self._stats["handler_errors"] += 1
                logger.error(
                    "Handler %s failed processing %s: %s",
                    adapter.name,
                    event.event_type,
                    e,
                    exc_info=True,
                    extra={
                        "handler": adapter.name,
                        "event_type": event.event_type,
                        "event_id": str(event.event_id),
                        "error": str(e),
                    },
                )

    def subscribe(self, event_type: type[LogEvent], handler: Any) -> None:
        adapter = HandlerAdapter(handler)

        with self._lock:
            self._subscribers[event_type].append(adapter)

        logger.info(
            "Registered handler %s for %s",
            adapter.name,
            event_type.__name__,
            extra={"handler": adapter.name, "event_type": event_type.__name__},
        )

    def unsubscribe(self, event_type: type[LogEvent], handler: Any) -> bool:
        target_adapter = HandlerAdapter(handler)

        with self._lock:
            adapters = self._subscribers.get(event_type, [])
            for i, adapter in enumerate(adapters):
                if adapter == target_adapter:
                    adapters.pop(i)
                    logger.info(
                        "Unsubscribed handler %s from %s",
                        adapter.name,
                        event_type.__name__,
                        extra={"handler": adapter.name, "event_type": event_type.__name__},
                    )
                    return True

        logger.debug(
            "Handler %s not found for %s",
            target_adapter.name,
            event_type.__name__,
            extra={"handler": target_adapter.name, "event_type": event_type.__name__},
        )
        return False

    def subscribe_all(self, subscriber: EventSubscriber) -> None:
        for event_type in subscriber.subscribed_to():
            self.subscribe(event_type, subscriber)

    def subscribe_to_all_events(self, handler: Any) -> None:
        adapter = HandlerAdapter(handler)

        with self._lock:
            self._all_event_handlers.append(adapter)

        logger.info("Registered wildcard handler %s", adapter.name, extra={"handler": adapter.name})

    def unsubscribe_from_all_events(self, handler: Any) -> bool:
        target_adapter = HandlerAdapter(handler)

        with self._lock:
            for i, adapter in enumerate(self._all_event_handlers):
                if adapter == target_adapter:
                    self._all_event_handlers.pop(i)
                    logger.info(
                        "Unsubscribed wildcard handler %s",
                        adapter.name,
                        extra={"handler": adapter.name},
                    )
                    return True
        return False

    def clear_subscribers(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._all_event_handlers.clear()

        logger.info("All event subscribers cleared")

    def get_subscriber_count(self, event_type: type[LogEvent] | None = None) -> int:
        """
        Get the number of registered subscribers.

        Args:
            event_type: If provided, count subscribers for this event type only.
                Wildcard subscribers are never included.
        """
        with self._lock:
            if event_type is None:
                return sum(len(handlers) for handlers in self._subscribers.values())
            return len(self._subscribers.get(event_type, []))

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Wait for background publishing tasks to finish.

        Tasks still running after ``timeout`` seconds are cancelled.
        """
        logger.info(
            "Shutting down event bus, waiting for %d background task(s)",
            len(self._background_tasks),
        )

        pending = list(self._background_tasks)
        if not pending:
            return

        _, remaining = await asyncio.wait(
            pending,
            timeout=timeout,
            return_when=asyncio.ALL_COMPLETED,
        )
        if remaining:
            logger.warning(
                "Event bus shutdown: %d task(s) did not complete within timeout",
                len(remaining),
                extra={"remaining_tasks": len(remaining)},
            )
            for task in remaining:
                task.cancel()

        logger.info("Event bus shutdown complete")


__all__ = ["InMemoryEventBus"]
