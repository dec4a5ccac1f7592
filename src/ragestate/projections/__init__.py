"""
Projectors that derive read models from the event log.

Subscribe them to the bus that the store publishes to:

    >>> bus = InMemoryEventBus()
    >>> store = InMemoryEventLogStore(publisher=bus)
    >>> bus.subscribe_all(ChatSummaryProjector(store, chats, summaries, users))
    >>> bus.subscribe_all(PostCounterProjector(store, posts))
"""

from ragestate.projections.base import DeclarativeProjection, Projection
from ragestate.projections.chat_summary import (
    ChatSummaryDocument,
    ChatSummaryProjector,
    build_last_message,
)
from ragestate.projections.fanout import FanoutApply, FanoutReport, FanoutWorker
from ragestate.projections.post_counters import PostCounterProjector

__all__ = [
    "Projection",
    "DeclarativeProjection",
    "ChatSummaryProjector",
    "ChatSummaryDocument",
    "build_last_message",
    "FanoutWorker",
    "FanoutReport",
    "FanoutApply",
    "PostCounterProjector",
]
