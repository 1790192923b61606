"""Typed errors raised along the append -> project -> query path."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .event import EventRecord


class ChronicleError(Exception):
    """Base class for every error raised by chronicle."""

    kind = "error"

    @property
    def detail(self) -> str:
        return str(self)


class ConcurrencyConflict(ChronicleError):
    """Raised when an optimistic concurrency check fails.

    The stream was modified between the moment its version was read and the
    moment new events were appended. Nothing was committed.

    Attributes:
        stream_id: The stream that was being written.
        expected_version: The version the writer believed was current.
        actual_version: The version found in the store.
        retryable: False when the expectation came from the caller of a
            command rather than from an internal load, in which case
            re-running the command cannot satisfy it.
    """

    kind = "concurrency_conflict"

    def __init__(
        self,
        stream_id: str,
        expected_version: int | None,
        actual_version: int,
        retryable: bool = True,
    ):
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.retryable = retryable
        super().__init__(
            f"Concurrency conflict on stream '{stream_id}': "
            f"expected version {expected_version}, found {actual_version}"
        )


class DomainRuleViolation(ChronicleError):
    """Raised by aggregate command handlers when a business rule rejects a command.

    Permanent for the given input; never retried.
    """

    kind = "domain_rule_violation"


class UnknownEventType(ChronicleError):
    """Raised when replay meets an event type the aggregate cannot apply.

    This indicates schema drift. Reconstruction aborts instead of skipping
    the event, since skipping would corrupt the derived state.
    """

    kind = "unknown_event_type"

    def __init__(self, event_type: str, owner: str):
        self.event_type = event_type
        self.owner = owner
        super().__init__(f"{owner} has no applier registered for event type '{event_type}'")


class StreamNotFound(ChronicleError):
    """Raised when a caller requires a stream to exist and it has no events."""

    kind = "stream_not_found"

    def __init__(self, stream_id: str):
        self.stream_id = stream_id
        super().__init__(f"Stream '{stream_id}' not found")


class ProjectionApplyFailure(ChronicleError):
    """Raised when a projection exhausts its retries for a single event.

    The projection cursor is left at the last successfully applied event.
    """

    kind = "projection_apply_failure"

    def __init__(self, projection: str, record: "EventRecord", attempts: int):
        self.projection = projection
        self.record = record
        self.attempts = attempts
        super().__init__(
            f"Projection '{projection}' failed to apply {record.event_type} "
            f"at global position {record.global_position} after {attempts} attempts"
        )


class ProjectionLagTimeout(ChronicleError):
    """Raised when a read-your-writes wait times out before the projection catches up."""

    kind = "projection_lag_timeout"

    def __init__(self, projection: str, position: int, target: int):
        self.projection = projection
        self.position = position
        self.target = target
        super().__init__(
            f"Projection '{projection}' is at position {position}, "
            f"timed out waiting for position {target}"
        )
