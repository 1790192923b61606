"""Context propagation middleware for correlation and causation tracking."""

from typing import Any

from ulid import ULID

from ...context import ExecutionContext, clear_context, set_context
from ...domain import Command
from ...routing import intercepts
from .base import Handler, Middleware


class ContextPropagationMiddleware(Middleware):
    """Sets the execution context from the incoming command.

    Events decided while the command is handled inherit the context as
    metadata: ``correlation_id`` traces the whole operation and
    ``causation_id`` is the command's id.

    - A command without correlation_id starts a new operation.
    - A command without causation_id is caused by its own correlation.

    The context is cleared afterwards, even when the command fails.
    """

    @intercepts
    async def propagate_context(self, command: Command, next: Handler) -> Any:
        correlation_id = command.correlation_id or ULID()
        set_context(
            ExecutionContext(
                correlation_id=correlation_id,
                causation_id=command.causation_id or correlation_id,
                command_id=command.command_id,
            )
        )
        try:
            return await next(command)
        finally:
            clear_context()
