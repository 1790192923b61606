"""Command base class for the write side of CQRS.

Commands represent intentions to change the state of one stream.
"""

from pydantic import BaseModel, Field
from ulid import ULID

ANY_VERSION = None
"""Sentinel expected version that disables the optimistic concurrency check."""


class Command(BaseModel):
    """Base class for all commands in the system.

    Commands are dispatched to the aggregate that owns ``stream_id``. They
    are consumed once and never persisted; only the events they produce are.

    Attributes:
        stream_id: Identity of the stream (aggregate) the command targets.
        expected_version: The stream version the caller believes is current,
            or ``ANY_VERSION`` to skip the check. Use 0 to require that the
            stream does not exist yet.
        command_id: Unique identifier for this command instance.
        correlation_id: Optional correlation ID for distributed tracing.
        causation_id: Optional ID of what caused this command.

    Examples:
        >>> class DepositMoney(Command):
        ...     amount: Decimal
        >>>
        >>> DepositMoney(stream_id="acct-1", expected_version=1, amount=Decimal("50"))
    """

    stream_id: str = Field(min_length=1)
    expected_version: int | None = Field(default=ANY_VERSION, ge=0)
    command_id: ULID = Field(default_factory=ULID)
    correlation_id: ULID | None = None
    causation_id: ULID | None = None
