"""Event bus: delivers newly stored log events to projectors."""

from ragestate.bus.interface import EventBus, EventHandlerFunc, EventSubscriber
from ragestate.bus.memory import InMemoryEventBus

__all__ = [
    "EventBus",
    "EventHandlerFunc",
    "EventSubscriber",
    "InMemoryEventBus",
]
