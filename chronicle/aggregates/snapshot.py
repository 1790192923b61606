"""Snapshot extension point for long streams.

Replaying a whole stream on every command is the default. Snapshots trade
storage for replay cost: a strategy decides when to take one and a storage
backend keeps them. Reconstruction then starts from the latest snapshot and
only replays the events committed after it.
"""

from abc import ABC, abstractmethod
from collections import defaultdict

from ..domain import Aggregate


class AggregateSnapshotStrategy(ABC):
    @staticmethod
    def never() -> "AggregateSnapshotStrategy":
        return NeverSnapshot()

    @abstractmethod
    def should_snapshot(self, aggregate: Aggregate) -> bool:
        pass


class NeverSnapshot(AggregateSnapshotStrategy):
    def should_snapshot(self, _: Aggregate) -> bool:
        return False


class SnapshotAfterN(AggregateSnapshotStrategy):
    """Snapshot whenever the aggregate's version is a multiple of ``version_increment``."""

    def __init__(self, version_increment: int):
        if version_increment <= 0:
            raise ValueError("version_increment must be positive")
        self.version_increment = version_increment

    def should_snapshot(self, aggregate: Aggregate) -> bool:
        return aggregate.version > 0 and aggregate.version % self.version_increment == 0


class AggregateSnapshotStorageBackend(ABC):
    @staticmethod
    def null() -> "AggregateSnapshotStorageBackend":
        """A snapshot backend that does not store any snapshots."""
        return NullAggregateSnapshotStorageBackend()

    @abstractmethod
    async def save_snapshot(self, aggregate: Aggregate) -> None:
        """Save a snapshot of the aggregate.

        Implementations may keep only the latest snapshot per stream or a
        history of them. Either way the latest snapshot must be cheap to
        retrieve, as that is the common operation.
        """
        pass

    @abstractmethod
    async def load_snapshot(
        self,
        aggregate_type: type[Aggregate],
        stream_id: str,
        intended_version: int | None = None,
    ) -> Aggregate | None:
        """Load the latest snapshot at or below ``intended_version``.

        Returns None when no suitable snapshot exists; the repository then
        replays the full stream.
        """
        pass


class NullAggregateSnapshotStorageBackend(AggregateSnapshotStorageBackend):
    """A snapshot backend that does not store any snapshots."""

    async def save_snapshot(self, _: Aggregate) -> None:
        pass

    async def load_snapshot(
        self,
        aggregate_type: type[Aggregate],
        stream_id: str,
        intended_version: int | None = None,
    ) -> Aggregate | None:
        return None


class InMemoryAggregateSnapshotStorageBackend(AggregateSnapshotStorageBackend):
    """Keeps serialized snapshots in memory, several versions per stream.

    Snapshots are stored as JSON so that a loaded snapshot never shares
    state with the aggregate it was taken from.
    """

    def __init__(self) -> None:
        self.snapshots: dict[str, list[tuple[int, str]]] = defaultdict(list)

    async def save_snapshot(self, aggregate: Aggregate) -> None:
        self.snapshots[aggregate.stream_id].append(
            (aggregate.version, aggregate.model_dump_json())
        )

    async def load_snapshot(
        self,
        aggregate_type: type[Aggregate],
        stream_id: str,
        intended_version: int | None = None,
    ) -> Aggregate | None:
        for version, state in reversed(self.snapshots.get(stream_id, [])):
            if intended_version is None or version <= intended_version:
                return aggregate_type.model_validate_json(state)
        return None
