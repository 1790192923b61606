"""In-memory event store for tests and single-process applications."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Sequence

from ..domain import ANY_VERSION, ConcurrencyConflict, EventRecord, NewEvent, StreamNotFound
from .base import EventStore

LOGGER = logging.getLogger(__name__)


class InMemoryEventStore(EventStore):
    """Dictionary-based in-memory event store.

    Keeps every record twice: in a per-stream list indexed by sequence
    number and in a global log indexed by global position. Both lists only
    ever grow, so position ``n`` is always at index ``n - 1``.

    Writers to the same stream are serialized by a per-stream lock held
    across the version check and the write. Global positions are assigned
    under a second, store-wide lock so the log never has gaps or goes
    backwards. Writers to different streams only contend on that short
    second section.

    This implementation is suitable for:
    - Unit tests (fast, no external dependencies)
    - Development and experimentation
    - Single-process applications that accept losing the log on restart
    """

    def __init__(self) -> None:
        super().__init__()
        self._streams: dict[str, list[EventRecord]] = {}
        self._log: list[EventRecord] = []
        self._stream_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._position_lock = asyncio.Lock()

    async def append(
        self,
        stream_id: str,
        expected_version: int | None,
        new_events: Sequence[NewEvent],
    ) -> list[EventRecord]:
        if not new_events:
            raise ValueError("new_events must not be empty")

        async with self._stream_locks[stream_id]:
            current_version = len(self._streams.get(stream_id, ()))
            if expected_version is not ANY_VERSION and expected_version != current_version:
                raise ConcurrencyConflict(stream_id, expected_version, current_version)

            async with self._position_lock:
                head = len(self._log)
                committed = [
                    EventRecord(
                        stream_id=stream_id,
                        sequence_number=current_version + offset,
                        event_type=event.event_type,
                        payload=event.payload,
                        metadata=dict(event.metadata),
                        global_position=head + offset,
                    )
                    for offset, event in enumerate(new_events, start=1)
                ]
                self._log.extend(committed)
                self._streams.setdefault(stream_id, []).extend(committed)

        LOGGER.debug(
            "Committed events",
            extra={
                "stream_id": stream_id,
                "version": committed[-1].sequence_number,
                "global_position": committed[-1].global_position,
            },
        )
        await self._notify_committed(committed)
        return committed

    async def get_events(
        self,
        stream_id: str,
        from_version: int = 0,
        require_existing: bool = False,
    ) -> list[EventRecord]:
        stream = self._streams.get(stream_id)
        if not stream:
            if require_existing:
                raise StreamNotFound(stream_id)
            return []
        return stream[max(from_version, 0) :]

    async def get_events_from(
        self,
        global_position: int,
        limit: int | None = None,
    ) -> AsyncIterator[EventRecord]:
        start = max(global_position, 1) - 1
        stop = len(self._log) if limit is None else min(len(self._log), start + limit)
        for record in self._log[start:stop]:
            yield record

    async def stream_version(self, stream_id: str) -> int:
        return len(self._streams.get(stream_id, ()))

    async def head_position(self) -> int:
        return len(self._log)
