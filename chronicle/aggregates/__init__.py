"""Aggregate runtime: reconstruction by replay and the snapshot extension point."""

from .repository import AggregateRepository
from .snapshot import (
    AggregateSnapshotStorageBackend,
    AggregateSnapshotStrategy,
    InMemoryAggregateSnapshotStorageBackend,
    NeverSnapshot,
    NullAggregateSnapshotStorageBackend,
    SnapshotAfterN,
)

__all__ = [
    "AggregateRepository",
    "AggregateSnapshotStorageBackend",
    "AggregateSnapshotStrategy",
    "InMemoryAggregateSnapshotStorageBackend",
    "NeverSnapshot",
    "NullAggregateSnapshotStorageBackend",
    "SnapshotAfterN",
]
