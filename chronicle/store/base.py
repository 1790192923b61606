"""Event store interface for durable, append-only event persistence."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from ..domain import EventRecord, NewEvent

if TYPE_CHECKING:
    from .subscription import EventSubscription

CommitListener = Callable[[list[EventRecord]], Awaitable[None]]


class EventStore(ABC):
    """Abstract interface for durable event persistence.

    EventStore is the single source of truth. Events are persisted as an
    immutable, append-only log partitioned into streams, one per aggregate.

    Key responsibilities:
    - **Durability**: Events survive system failures once ``append`` returns
    - **Ordering**: Sequence numbers are contiguous per stream; global
      positions totally order all records and never go backwards
    - **Concurrency Control**: Optimistic locking via ``expected_version``,
      checked atomically with the version read
    - **Notification**: Committed records wake up subscribers, which then
      read the log in global-position order

    Subclasses implement the storage primitives and call
    ``_notify_committed`` after every successful commit.
    """

    def __init__(self) -> None:
        self._commit_signal = asyncio.Condition()
        self._last_notified_position = 0
        self._commit_listeners: list[CommitListener] = []
        self._delivery_lock = asyncio.Lock()
        self._delivered_position = 0

    @abstractmethod
    async def append(
        self,
        stream_id: str,
        expected_version: int | None,
        new_events: Sequence[NewEvent],
    ) -> list[EventRecord]:
        """Append events to a stream with optimistic concurrency control.

        Args:
            stream_id: The stream to append to. Created implicitly on first append.
            expected_version: The stream's current highest sequence number
                (0 for a stream that does not exist yet), or ``ANY_VERSION``
                to skip the check.
            new_events: Ordered, non-empty events to commit.

        Returns:
            The committed records with sequence numbers and global positions.

        Raises:
            ConcurrencyConflict: If the stream's version differs from
                ``expected_version``. Nothing is committed.
            ValueError: If ``new_events`` is empty.
        """
        ...

    @abstractmethod
    async def get_events(
        self,
        stream_id: str,
        from_version: int = 0,
        require_existing: bool = False,
    ) -> list[EventRecord]:
        """Load a stream's records with ``sequence_number > from_version``.

        Args:
            stream_id: The stream to load.
            from_version: Only return records after this version.
            require_existing: Raise instead of returning an empty list when
                the stream has no events.

        Returns:
            Contiguous records in sequence order.

        Raises:
            StreamNotFound: If ``require_existing`` and the stream is empty.
        """
        ...

    @abstractmethod
    def get_events_from(
        self,
        global_position: int,
        limit: int | None = None,
    ) -> AsyncIterator[EventRecord]:
        """Iterate records across all streams from a global position (inclusive).

        The iteration is finite: it covers what was committed when the call
        was made, optionally capped at ``limit`` records. Resume by calling
        again with the position after the last record seen.
        """
        ...

    @abstractmethod
    async def stream_version(self, stream_id: str) -> int:
        """Return the stream's highest sequence number, 0 if it does not exist."""
        ...

    @abstractmethod
    async def head_position(self) -> int:
        """Return the highest committed global position, 0 if the log is empty."""
        ...

    async def wait_for_commit(self, after_position: int, timeout: float | None = None) -> bool:
        """Wait until a record past ``after_position`` is committed.

        Commits made through this store instance wake waiters immediately.
        Commits made elsewhere (another process sharing the storage) are
        only seen by the initial head check, so callers poll in a loop.

        Returns:
            True if such a record exists, False if the timeout elapsed.
        """
        if await self.head_position() > after_position:
            return True
        async with self._commit_signal:
            try:
                await asyncio.wait_for(
                    self._commit_signal.wait_for(
                        lambda: self._last_notified_position > after_position
                    ),
                    timeout,
                )
            except asyncio.TimeoutError:
                return False
        return True

    async def add_commit_listener(self, listener: CommitListener) -> None:
        """Call ``listener`` with the records of every later commit.

        Batches are delivered in global-position order and each record is
        delivered once. When two commits race, the first notification to
        arrive delivers both of them, read back from the log.

        Delivery runs inside ``append`` after the records are committed. A
        listener that raises makes that ``append`` raise; the records stay
        committed. Listeners must not append to the same store.
        """
        async with self._delivery_lock:
            if not self._commit_listeners:
                self._delivered_position = await self.head_position()
            self._commit_listeners.append(listener)

    def remove_commit_listener(self, listener: CommitListener) -> None:
        """Stop calling ``listener``.

        Raises:
            ValueError: If the listener was not added.
        """
        self._commit_listeners.remove(listener)

    def subscribe(self, from_global_position: int = 1, batch_size: int = 100) -> "EventSubscription":
        """Create a subscription yielding records from a global position onwards."""
        from .subscription import EventSubscription

        return EventSubscription(self, from_global_position, batch_size=batch_size)

    async def _notify_committed(self, records: Sequence[EventRecord]) -> None:
        if not records:
            return
        async with self._commit_signal:
            last = records[-1].global_position or 0
            self._last_notified_position = max(self._last_notified_position, last)
            self._commit_signal.notify_all()

        if self._commit_listeners:
            await self._deliver_to_listeners(last)

    async def _deliver_to_listeners(self, last_position: int) -> None:
        async with self._delivery_lock:
            if last_position <= self._delivered_position:
                return
            # Earlier commits whose notification is still pending are read here too
            batch = [
                record
                async for record in self.get_events_from(
                    self._delivered_position + 1,
                    limit=last_position - self._delivered_position,
                )
            ]
            self._delivered_position = last_position
            for listener in list(self._commit_listeners):
                await listener(batch)
