"""MongoDB implementation of EventStore.

Every append is stored as a single "commit" document holding all of the
appended events, so an append is atomic without multi-document
transactions:

    {
        "_id": 17,                    # global position of the first event
        "last_position": 19,
        "stream_id": "acct-1",
        "first_sequence": 4,
        "last_sequence": 6,
        "events": [{...}, {...}, {...}]
    }

Two unique indexes do the concurrency control. ``(stream_id,
first_sequence)`` rejects a second commit to a stream at the same version,
which is the optimistic concurrency check. ``_id`` rejects a second commit
at the same global position; a writer that loses that race re-reads the
head and tries again, which keeps global positions gap-free and makes them
visible in order.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from pymongo.errors import DuplicateKeyError

from ...domain import ANY_VERSION, ConcurrencyConflict, EventRecord, NewEvent, StreamNotFound, utc_now
from ...store import EventStore
from .collection import IndexDirection, IndexedCollection, IndexSpec
from .config import MongoConfiguration

LOGGER = logging.getLogger(__name__)


def _event_document(record: EventRecord) -> dict[str, Any]:
    return {
        "event_id": str(record.event_id),
        "sequence_number": record.sequence_number,
        "global_position": record.global_position,
        "event_type": record.event_type,
        "payload": record.payload,
        "occurred_at": record.occurred_at,
        "metadata": record.metadata,
    }


def _records(commit: dict[str, Any]) -> list[EventRecord]:
    return [
        EventRecord.model_validate({**event, "stream_id": commit["stream_id"]})
        for event in commit["events"]
    ]


class MongoEventStore(EventStore):
    """MongoDB-backed event store.

    Example:
        >>> config = MongoConfiguration(uri="mongodb://localhost:27017")
        >>> store = MongoEventStore(config)
        >>> await store.initialize_schema()
        >>> await store.append("acct-1", 0, [NewEvent.from_model(AccountOpened(balance=100))])
    """

    def __init__(self, config: MongoConfiguration) -> None:
        super().__init__()
        self._commits = IndexedCollection(
            config.commits,
            indexes=[
                IndexSpec(
                    keys=[
                        ("stream_id", IndexDirection.ASC),
                        ("first_sequence", IndexDirection.ASC),
                    ],
                    unique=True,
                ),
                IndexSpec(
                    keys=[
                        ("stream_id", IndexDirection.ASC),
                        ("last_sequence", IndexDirection.ASC),
                    ]
                ),
                IndexSpec(keys=[("last_position", IndexDirection.ASC)]),
            ],
        )

    async def initialize_schema(self) -> None:
        """Create the commit indexes eagerly."""
        await self._commits.ensure_indexes()

    async def append(
        self,
        stream_id: str,
        expected_version: int | None,
        new_events: Sequence[NewEvent],
    ) -> list[EventRecord]:
        if not new_events:
            raise ValueError("Cannot append an empty list of events")

        while True:
            version = await self.stream_version(stream_id)
            if expected_version is not ANY_VERSION and version != expected_version:
                raise ConcurrencyConflict(stream_id, expected_version, version)

            first_position = await self.head_position() + 1
            occurred_at = utc_now()
            records = [
                EventRecord(
                    stream_id=stream_id,
                    sequence_number=version + offset,
                    event_type=event.event_type,
                    payload=event.payload,
                    occurred_at=occurred_at,
                    metadata=event.metadata,
                    global_position=first_position + offset - 1,
                )
                for offset, event in enumerate(new_events, start=1)
            ]
            try:
                await self._commits.insert_one(
                    {
                        "_id": first_position,
                        "last_position": records[-1].global_position,
                        "stream_id": stream_id,
                        "first_sequence": records[0].sequence_number,
                        "last_sequence": records[-1].sequence_number,
                        "events": [_event_document(record) for record in records],
                    }
                )
            except DuplicateKeyError as e:
                key_pattern = (e.details or {}).get("keyPattern", {})
                if "stream_id" not in key_pattern:
                    LOGGER.debug(
                        "Lost global position race, retrying",
                        extra={"stream_id": stream_id, "global_position": first_position},
                    )
                    continue
                if expected_version is ANY_VERSION:
                    continue
                raise ConcurrencyConflict(
                    stream_id, expected_version, await self.stream_version(stream_id)
                ) from e
            break

        LOGGER.debug(
            "Appended events",
            extra={
                "stream_id": stream_id,
                "version": records[-1].sequence_number,
                "global_position": records[-1].global_position,
            },
        )
        await self._notify_committed(records)
        return records

    async def get_events(
        self,
        stream_id: str,
        from_version: int = 0,
        require_existing: bool = False,
    ) -> list[EventRecord]:
        records: list[EventRecord] = []
        async for commit in self._commits.find(
            {"stream_id": stream_id, "last_sequence": {"$gt": from_version}},
            sort=[("first_sequence", IndexDirection.ASC)],
        ):
            records.extend(r for r in _records(commit) if r.sequence_number > from_version)

        if not records and require_existing and await self.stream_version(stream_id) == 0:
            raise StreamNotFound(stream_id)
        return records

    async def get_events_from(
        self,
        global_position: int,
        limit: int | None = None,
    ) -> AsyncIterator[EventRecord]:
        if limit is not None and limit <= 0:
            return
        count = 0
        async for commit in self._commits.find(
            {"last_position": {"$gte": global_position}},
            sort=[("_id", IndexDirection.ASC)],
        ):
            for record in _records(commit):
                if record.global_position is None or record.global_position < global_position:
                    continue
                yield record
                count += 1
                if limit is not None and count >= limit:
                    return

    async def stream_version(self, stream_id: str) -> int:
        commit = await self._commits.find_latest({"stream_id": stream_id}, "last_sequence")
        return commit["last_sequence"] if commit else 0

    async def head_position(self) -> int:
        commit = await self._commits.find_latest({}, "_id")
        return commit["last_position"] if commit else 0
