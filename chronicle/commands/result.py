"""Command outcomes."""

from dataclasses import dataclass, field
from enum import Enum

from ..domain import EventRecord


class CommandState(str, Enum):
    """Lifecycle of a single command.

    ``Received -> Loaded -> Decided -> Committed | Rejected``, with
    ``Retried`` looping back to ``Loaded`` after a lost concurrency race.
    """

    RECEIVED = "received"
    LOADED = "loaded"
    DECIDED = "decided"
    COMMITTED = "committed"
    REJECTED = "rejected"
    RETRIED = "retried"


@dataclass(frozen=True)
class CommandError:
    """Why a submitted command failed.

    Attributes:
        kind: Machine readable error kind, e.g. ``"concurrency_conflict"``.
        detail: Human readable description.
    """

    kind: str
    detail: str


@dataclass(frozen=True)
class CommandResult:
    """Outcome of handling one command.

    Attributes:
        success: Whether the command was accepted.
        committed_version: Stream version after the command. Unchanged when
            the decision produced no events.
        global_position: Global position of the last committed event, if any
            were committed.
        events: The records committed by this command.
        error: Set when ``success`` is False.
    """

    success: bool
    committed_version: int | None = None
    global_position: int | None = None
    events: list[EventRecord] = field(default_factory=list)
    error: CommandError | None = None

    @classmethod
    def committed(cls, records: list[EventRecord]) -> "CommandResult":
        last = records[-1]
        return cls(
            success=True,
            committed_version=last.sequence_number,
            global_position=last.global_position,
            events=list(records),
        )

    @classmethod
    def unchanged(cls, version: int) -> "CommandResult":
        return cls(success=True, committed_version=version)

    @classmethod
    def failed(cls, kind: str, detail: str) -> "CommandResult":
        return cls(success=False, error=CommandError(kind=kind, detail=detail))
