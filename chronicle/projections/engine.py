"""Hosts projection runners as independent asyncio tasks."""

import asyncio
import logging
from collections.abc import Iterable

from ..store import EventStore
from .cursor import CursorStore
from .projection import Projection
from .runner import ProjectionRunner

LOGGER = logging.getLogger(__name__)


class ProjectionEngine:
    """Runs every registered projection concurrently.

    Each projection gets its own runner and task, so a slow or failing
    projection never holds up the others. There is no ordering guarantee
    between projections: each is only consistent with the log up to its own
    cursor.
    """

    def __init__(
        self,
        event_store: EventStore,
        cursor_store: CursorStore,
        batch_size: int = 100,
        max_attempts: int = 5,
        retry_backoff: float = 0.05,
        max_backoff: float = 2.0,
        idle_timeout: float = 1.0,
    ) -> None:
        self.event_store = event_store
        self.cursor_store = cursor_store
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.max_backoff = max_backoff
        self.idle_timeout = idle_timeout
        self._runners: dict[str, ProjectionRunner[Projection]] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def add(self, projection: Projection) -> ProjectionRunner[Projection]:
        """Register a projection.

        Raises:
            ValueError: If a projection with the same name is registered.
        """
        if projection.name in self._runners:
            raise ValueError(f"Projection '{projection.name}' is already registered")
        runner = ProjectionRunner(
            projection,
            self.event_store,
            self.cursor_store,
            batch_size=self.batch_size,
            max_attempts=self.max_attempts,
            retry_backoff=self.retry_backoff,
            max_backoff=self.max_backoff,
            idle_timeout=self.idle_timeout,
        )
        self._runners[projection.name] = runner
        return runner

    def runner(self, name: str) -> ProjectionRunner[Projection]:
        """Look up the runner of a projection.

        Raises:
            KeyError: If no projection of that name is registered.
        """
        return self._runners[name]

    @property
    def runners(self) -> Iterable[ProjectionRunner[Projection]]:
        return self._runners.values()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    async def catch_up(self) -> dict[str, int]:
        """Bring every projection up to the current head, one after another.

        Returns:
            The cursor position of each projection afterwards.
        """
        return {name: await runner.catch_up() for name, runner in self._runners.items()}

    async def start(self) -> None:
        """Start a task per projection. Calling start twice is a no-op."""
        for name, runner in self._runners.items():
            if name in self._tasks and not self._tasks[name].done():
                continue
            self._tasks[name] = asyncio.create_task(runner.run(), name=f"projection:{name}")

    async def stop(self) -> None:
        """Cancel all projection tasks and wait for them to finish.

        Raises:
            ProjectionApplyFailure: If a projection had stopped on a record it
                could not apply.
        """
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result
