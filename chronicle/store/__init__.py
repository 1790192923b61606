"""Event store infrastructure.

- EventStore: Append-only persistence with optimistic concurrency
- InMemoryEventStore: Lock-based in-process implementation
- EventSubscription: Pull-based delivery of committed records by global position
- CommitListener: Async callback receiving each commit in global-position order
"""

from .base import CommitListener, EventStore
from .memory import InMemoryEventStore
from .subscription import EventSubscription

__all__ = [
    "CommitListener",
    "EventStore",
    "EventSubscription",
    "InMemoryEventStore",
]
