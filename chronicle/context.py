import contextvars
from dataclasses import dataclass, replace

from ulid import ULID


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable context for tracking request flow through the system.

    ExecutionContext captures the causal relationship between commands and
    the events they commit. When a command is handled inside a context,
    the context is written into each new event's metadata so projections and
    operators can follow an operation across streams.

    Attributes:
        correlation_id: Traces an entire logical operation. Remains constant
            throughout the flow.
        causation_id: ID of what directly caused this operation.
        command_id: The command currently being handled. Events it commits
            record it as their causation.

    Examples:
        >>> ctx = ExecutionContext.create()
        >>> cmd_ctx = ctx.for_command(command.command_id)
        >>> cmd_ctx.as_metadata()
        {'correlation_id': '...', 'causation_id': '...', 'command_id': '...'}
    """

    correlation_id: ULID | None = None
    causation_id: ULID | None = None
    command_id: ULID | None = None

    @classmethod
    def create(cls, correlation_id: ULID | None = None) -> "ExecutionContext":
        """Create a new context at a system entry point.

        At entry points the causation is the correlation itself.
        """
        if correlation_id is None:
            correlation_id = ULID()
        return cls(correlation_id=correlation_id, causation_id=correlation_id)

    def for_command(self, command_id: ULID) -> "ExecutionContext":
        return replace(self, command_id=command_id)

    def for_event(self, event_id: ULID) -> "ExecutionContext":
        """Create a child context for processing a committed event."""
        return replace(self, causation_id=event_id, command_id=None)

    def as_metadata(self) -> dict[str, str]:
        """Render the context as event metadata.

        Commands cause the events they commit, so when a command id is set
        it is recorded as the causation.
        """
        metadata: dict[str, str] = {}
        if self.correlation_id is not None:
            metadata["correlation_id"] = str(self.correlation_id)
        causation = self.command_id or self.causation_id
        if causation is not None:
            metadata["causation_id"] = str(causation)
        return metadata


_context: contextvars.ContextVar[ExecutionContext | None] = contextvars.ContextVar(
    "execution_context", default=None
)


def get_context() -> ExecutionContext:
    """Get the current execution context, or an empty one if none is set."""
    ctx = _context.get()
    if ctx is None:
        return ExecutionContext()
    return ctx


def set_context(context: ExecutionContext) -> None:
    _context.set(context)


def clear_context() -> None:
    _context.set(None)
