"""Concurrency retry middleware for handling optimistic locking conflicts."""

import asyncio
import logging
from typing import Any

from ...domain import Command, ConcurrencyConflict
from ...routing import intercepts
from ..result import CommandState
from .base import Handler, Middleware

LOGGER = logging.getLogger(__name__)


class ConcurrencyRetryMiddleware(Middleware):
    """Re-runs commands that lose an optimistic concurrency race.

    Each retry goes through the whole root handler again, so the aggregate
    is reconstructed at the new current version and the command is decided
    against it before the append is retried. Conflicts marked as not
    retryable (the caller's own ``expected_version`` is stale) are raised
    immediately. Once ``max_retries`` retries have failed the last conflict
    is surfaced to the caller; the command is never dropped silently.

    Attributes:
        max_retries: How many times to retry after the first attempt.
        retry_delay: The delay in seconds between attempts.

    Examples:
        >>> middleware = ConcurrencyRetryMiddleware(max_retries=3, retry_delay=0.0)
    """

    __slots__ = ("max_retries", "retry_delay")

    def __init__(self, max_retries: int = 3, retry_delay: float = 0.0):
        """Initialize the concurrency retry middleware.

        Raises:
            ValueError: If max_retries < 0 or retry_delay < 0.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if retry_delay < 0:
            raise ValueError("retry_delay must be non-negative")
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @intercepts
    async def retry_on_conflict(self, command: Command, next: Handler) -> Any:
        """Intercept all commands and retry on retryable concurrency conflicts.

        Raises:
            ConcurrencyConflict: If the caller's expectation is stale, or all
                attempts lost the race.
        """
        attempts = self.max_retries + 1
        attempt = 1
        while True:
            try:
                return await next(command)
            except ConcurrencyConflict as e:
                if not e.retryable:
                    raise
                LOGGER.warning(
                    "Concurrency conflict on attempt %d/%d: %s",
                    attempt,
                    attempts,
                    e,
                    extra={
                        "stream_id": command.stream_id,
                        "command_type": type(command).__name__,
                        "command_state": CommandState.RETRIED.value,
                    },
                )
                if attempt == attempts:
                    raise ConcurrencyConflict(
                        e.stream_id, e.expected_version, e.actual_version, retryable=False
                    ) from e
                if self.retry_delay:
                    await asyncio.sleep(self.retry_delay)
                attempt += 1
