"""Runtime that keeps one projection up to date with the event store."""

import asyncio
import logging
from typing import Generic, TypeVar

from ..domain import EventRecord, ProjectionApplyFailure
from ..store import EventStore
from .cursor import CursorStore
from .projection import Projection

P = TypeVar("P", bound=Projection)

LOGGER = logging.getLogger(__name__)


class ProjectionRunner(Generic[P]):
    """Feeds committed records to a projection and advances its cursor.

    The runner reads the log in global-position order starting right after
    the projection's cursor. For every record it first applies the record
    and only then saves the cursor, so the cursor never points past a record
    whose effect is missing from the read model. A crash between the two
    steps replays the record, which is why projection handlers must be
    idempotent.

    A failing handler is retried with exponential backoff. When all attempts
    fail the runner logs an error and raises ``ProjectionApplyFailure``; the
    cursor stays at the last record that was applied successfully.

    Attributes:
        projection: The projection being maintained.
        event_store: Source of committed records.
        cursor_store: Where the projection's cursor is persisted.
        batch_size: Records read from the store per batch.
        max_attempts: Attempts per record before giving up.
        retry_backoff: Delay in seconds before the first retry; doubles on
            every further retry.
        max_backoff: Upper bound for the retry delay.
        idle_timeout: How long ``run`` waits for a commit notification
            before polling the store again.

    Example:
        >>> runner = ProjectionRunner(AccountBalances(), event_store, InMemoryCursorStore())
        >>> await runner.catch_up()
        42
    """

    def __init__(
        self,
        projection: P,
        event_store: EventStore,
        cursor_store: CursorStore,
        batch_size: int = 100,
        max_attempts: int = 5,
        retry_backoff: float = 0.05,
        max_backoff: float = 2.0,
        idle_timeout: float = 1.0,
    ) -> None:
        """Initialize the runner.

        Raises:
            ValueError: If batch_size or max_attempts is not positive, or a
                delay is negative.
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if retry_backoff < 0 or max_backoff < 0:
            raise ValueError("backoff delays must be non-negative")
        self.projection = projection
        self.event_store = event_store
        self.cursor_store = cursor_store
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.max_backoff = max_backoff
        self.idle_timeout = idle_timeout
        self._position: int | None = None
        self._processing = asyncio.Lock()
        self._advanced = asyncio.Condition()

    @property
    def name(self) -> str:
        return self.projection.name

    @property
    def position(self) -> int:
        """Global position of the last record applied by this runner."""
        return self._position or 0

    async def load_cursor(self) -> int:
        if self._position is None:
            self._position = await self.cursor_store.load_cursor(self.name)
        return self._position

    async def process_batch(self) -> int:
        """Apply up to ``batch_size`` records after the cursor.

        Returns:
            The number of records read, including skipped ones. 0 means the
            projection is caught up with the store.

        Raises:
            ProjectionApplyFailure: If a record could not be applied.
        """
        async with self._processing:
            start = await self.load_cursor() + 1
            count = 0
            async for record in self.event_store.get_events_from(start, limit=self.batch_size):
                await self._apply_with_retry(record)
                await self._advance(record)
                count += 1
            return count

    async def catch_up(self) -> int:
        """Apply every record committed so far.

        Returns:
            The cursor position afterwards.
        """
        while await self.process_batch():
            pass
        return self.position

    async def run(self) -> None:
        """Keep the projection up to date until cancelled.

        Raises:
            ProjectionApplyFailure: If a record could not be applied.
        """
        LOGGER.info("Starting projection", extra={"projection": self.name})
        while True:
            await self.catch_up()
            await self.event_store.wait_for_commit(self.position, timeout=self.idle_timeout)

    async def wait_for_position(self, position: int, timeout: float | None = None) -> bool:
        """Wait until the projection has applied everything up to ``position``.

        Returns:
            True once the cursor reached ``position``, False on timeout.
        """
        if self.position >= position:
            return True
        async with self._advanced:
            try:
                await asyncio.wait_for(
                    self._advanced.wait_for(lambda: self.position >= position),
                    timeout,
                )
            except asyncio.TimeoutError:
                return False
        return True

    async def _apply_with_retry(self, record: EventRecord) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.projection.apply(record)
                return
            except Exception as e:
                if attempt == self.max_attempts:
                    LOGGER.error(
                        "Projection failed to apply event, giving up after %d attempts",
                        attempt,
                        exc_info=True,
                        extra={
                            "projection": self.name,
                            "stream_id": record.stream_id,
                            "event_type": record.event_type,
                            "global_position": record.global_position,
                        },
                    )
                    raise ProjectionApplyFailure(self.name, record, attempt) from e

                delay = min(self.retry_backoff * 2 ** (attempt - 1), self.max_backoff)
                LOGGER.warning(
                    "Projection failed to apply event on attempt %d/%d, retrying in %.3fs: %s",
                    attempt,
                    self.max_attempts,
                    delay,
                    e,
                    extra={
                        "projection": self.name,
                        "global_position": record.global_position,
                    },
                )
                await asyncio.sleep(delay)

    async def _advance(self, record: EventRecord) -> None:
        position = record.global_position
        if position is None:
            raise ValueError(
                f"Record {record.stream_id}@{record.sequence_number} has no global position"
            )
        await self.cursor_store.save_cursor(self.name, position)
        async with self._advanced:
            self._position = position
            self._advanced.notify_all()
