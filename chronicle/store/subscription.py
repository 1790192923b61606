"""Subscriptions delivering committed records in global-position order."""

from collections import deque

from ..domain import EventRecord
from .base import EventStore


class EventSubscription:
    """Reads the event log from a global position onwards, waiting for new commits.

    A subscription is a pull-based cursor over ``EventStore.get_events_from``.
    Records are fetched in batches and handed out one at a time. When the
    subscriber has caught up, ``next()`` suspends until the store reports a
    new commit (or until ``poll_interval`` elapses, to pick up commits made
    by other processes sharing the storage).

    Delivery is at-least-once from the subscriber's perspective: a new
    subscription created from a stored cursor will see the record at that
    position again if the subscriber crashed before recording progress.

    Example:
        >>> subscription = store.subscribe(from_global_position=1)
        >>> async for record in subscription:
        ...     print(record.global_position, record.event_type)
    """

    def __init__(
        self,
        store: EventStore,
        from_global_position: int = 1,
        batch_size: int = 100,
        poll_interval: float = 1.0,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.last_position = max(from_global_position, 1) - 1
        self._buffer: deque[EventRecord] = deque()
        self._fetched_position = self.last_position
        self._closed = False

    async def depth(self) -> int:
        """Number of committed records not yet returned by ``next()``."""
        return max(await self.store.head_position() - self.last_position, 0)

    async def next(self) -> EventRecord:
        """Return the next record, waiting for one to be committed if necessary.

        Raises:
            StopAsyncIteration: If the subscription has been closed.
        """
        while not self._buffer and not self._closed:
            if not await self._fill():
                await self.store.wait_for_commit(self._fetched_position, self.poll_interval)
        # close() may have been called while waiting for a commit
        if self._closed:
            raise StopAsyncIteration

        record = self._buffer.popleft()
        self.last_position = record.global_position or self.last_position
        return record

    def close(self) -> None:
        """Stop the subscription; records fetched but not yet returned are dropped."""
        self._closed = True
        self._buffer.clear()

    def __aiter__(self) -> "EventSubscription":
        return self

    async def __anext__(self) -> EventRecord:
        return await self.next()

    async def _fill(self) -> bool:
        async for record in self.store.get_events_from(
            self._fetched_position + 1, limit=self.batch_size
        ):
            self._buffer.append(record)
            self._fetched_position = record.global_position or self._fetched_position
        return bool(self._buffer)
