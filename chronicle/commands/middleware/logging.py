"""Logging middleware for command tracing."""

import logging
from typing import Any

from ...context import get_context
from ...domain import Command
from ...routing import intercepts
from .base import Handler, Middleware

LOGGER = logging.getLogger(__name__)


class LoggingMiddleware(Middleware):
    """Logs each command and its outcome with correlation ids.

    Command payloads are NOT logged to avoid exposing PII or sensitive
    information; only the command type, stream id and ids are.

    Note:
        For correlation ids to be present, ContextPropagationMiddleware
        should be registered before LoggingMiddleware.
    """

    def __init__(self, level: str = "INFO"):
        """Initialize the logging middleware.

        Args:
            level: Name of the log level (e.g. "INFO", "DEBUG"). Case-insensitive.
        """
        self.level = getattr(logging, level.upper())

    @intercepts
    async def log_command(self, command: Command, next: Handler) -> Any:
        extra = {
            "command_type": type(command).__name__,
            "stream_id": command.stream_id,
            "command_id": str(command.command_id),
        }
        ctx = get_context()
        if ctx.correlation_id is not None:
            extra["correlation_id"] = str(ctx.correlation_id)
        if ctx.causation_id is not None:
            extra["causation_id"] = str(ctx.causation_id)

        LOGGER.log(self.level, "Received command", extra=extra)
        result = await next(command)
        LOGGER.log(
            self.level,
            "Handled command",
            extra={**extra, "committed_version": getattr(result, "committed_version", None)},
        )
        return result
