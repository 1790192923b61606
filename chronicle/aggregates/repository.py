import logging
from collections.abc import Sequence
from typing import Generic, TypeVar

from ..domain import Aggregate, EventRecord, NewEvent
from ..store import EventStore
from .snapshot import AggregateSnapshotStorageBackend, AggregateSnapshotStrategy

A = TypeVar("A", bound=Aggregate)

LOGGER = logging.getLogger(__name__)


class AggregateRepository(Generic[A]):
    """A mechanism for reconstructing aggregates and committing their decisions.

    The repository mediates between the event store and the snapshot
    extension point. ``reconstruct`` folds a stream (optionally from a
    snapshot) into an aggregate; ``commit`` appends the events an aggregate
    decided and takes a snapshot when the strategy asks for one. The
    repository never persists aggregates directly: their event history is
    their persisted form, and snapshots are only a cache of it.
    """

    __slots__ = (
        "aggregate_type",
        "event_store",
        "snapshot_strategy",
        "snapshot_backend",
    )

    def __init__(
        self,
        aggregate_type: type[A],
        event_store: EventStore,
        snapshot_strategy: AggregateSnapshotStrategy | None = None,
        snapshot_backend: AggregateSnapshotStorageBackend | None = None,
    ):
        self.aggregate_type = aggregate_type
        self.event_store = event_store
        self.snapshot_strategy = snapshot_strategy or AggregateSnapshotStrategy.never()
        self.snapshot_backend = snapshot_backend or AggregateSnapshotStorageBackend.null()

    async def reconstruct(self, stream_id: str) -> tuple[A, int]:
        """Rebuild an aggregate from its stream.

        A stream that does not exist yet yields the zero-value aggregate at
        version 0, so commands that create streams need no special casing.

        Returns:
            The aggregate and the version it was folded up to.

        Raises:
            UnknownEventType: If the stream contains an event the aggregate
                cannot apply.
        """
        # (Medium Cost) Start from the latest snapshot if there is one.
        snapshot = await self.snapshot_backend.load_snapshot(self.aggregate_type, stream_id)
        initial = snapshot if snapshot is not None else self.aggregate_type(stream_id=stream_id)

        # (High Cost) Replay every event committed after the starting point.
        records = await self.event_store.get_events(stream_id, from_version=initial.version)
        aggregate = initial.replay(records)
        return aggregate, aggregate.version  # type: ignore[return-value]

    async def commit(
        self,
        aggregate: A,
        new_events: Sequence[NewEvent],
        expected_version: int | None,
    ) -> list[EventRecord]:
        """Append decided events for ``aggregate``'s stream.

        Raises:
            ConcurrencyConflict: If the stream moved past ``expected_version``.
        """
        records = await self.event_store.append(aggregate.stream_id, expected_version, new_events)

        # Without a version check the stream may have moved on since
        # ``aggregate`` was folded, so its state cannot be extended.
        if records[0].sequence_number != aggregate.version + 1:
            return records

        updated = aggregate.replay(records)
        if self.snapshot_strategy.should_snapshot(updated):
            await self.snapshot_backend.save_snapshot(updated)
            LOGGER.debug(
                "Saved snapshot",
                extra={"stream_id": updated.stream_id, "version": updated.version},
            )
        return records
