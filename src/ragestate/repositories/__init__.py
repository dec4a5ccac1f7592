"""Repositories backing the summary fan-out: its outbox and dead letter queue."""

from ragestate.repositories.dlq import (
    DLQEntry,
    DLQRepository,
    DLQStats,
    InMemoryDLQRepository,
)
from ragestate.repositories.outbox import (
    FanoutJob,
    FanoutJobStatus,
    FanoutStats,
    InMemoryFanoutOutbox,
)

__all__ = [
    "DLQEntry",
    "DLQRepository",
    "DLQStats",
    "InMemoryDLQRepository",
    "FanoutJob",
    "FanoutJobStatus",
    "FanoutStats",
    "InMemoryFanoutOutbox",
]
