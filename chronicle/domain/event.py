from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

T = TypeVar("T", bound=BaseModel)


def utc_now() -> datetime:
    """Get the current UTC timestamp.

    Returns:
        Current datetime with UTC timezone information
    """
    return datetime.now(tz=timezone.utc)


def event_type_name(model_type: type[BaseModel]) -> str:
    """Return the event type string persisted for a payload model.

    A payload model may pin its persisted name with an ``__event_type__``
    class attribute so that renaming the class does not break existing
    streams. Otherwise the class name is used.

    Examples:
        >>> class MoneyDeposited(BaseModel):
        ...     amount: int
        >>> event_type_name(MoneyDeposited)
        'MoneyDeposited'
    """
    return getattr(model_type, "__event_type__", None) or model_type.__name__


class NewEvent(BaseModel):
    """An event that has been decided but not yet committed.

    NewEvent is the unit handed to ``EventStore.append``. It carries no
    sequence number or global position; the store assigns both at commit.

    Attributes:
        event_type: Name used to look up the transition function on replay.
        payload: Serialized event data.
        metadata: String metadata such as correlation and causation ids.
    """

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(min_length=1)
    payload: bytes
    metadata: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_model(cls, data: BaseModel, metadata: dict[str, str] | None = None) -> "NewEvent":
        """Serialize a payload model into a NewEvent.

        Args:
            data: The pydantic model describing what happened.
            metadata: Optional string metadata to attach.

        Returns:
            A NewEvent whose payload is the JSON encoding of ``data``.
        """
        return cls(
            event_type=event_type_name(type(data)),
            payload=data.model_dump_json().encode(),
            metadata=metadata or {},
        )


class EventRecord(BaseModel):
    """Immutable record of a committed state change in a stream.

    EventRecord is the envelope persisted by the event store. Each record is
    a fact about one stream:

    - **Immutable**: records are frozen once created
    - **Ordered**: ``sequence_number`` is contiguous per stream starting at 1
    - **Globally positioned**: ``global_position`` totally orders records
      across all streams and is what projections track as their cursor
    - **Opaque**: the payload is serialized bytes, decoded only by the
      aggregate or projection that knows the event type

    Two records are equal when they share ``(stream_id, sequence_number)``,
    regardless of payload or metadata.

    Attributes:
        event_id: Unique identifier for this record
        stream_id: Identity of the aggregate the record belongs to
        sequence_number: Position in the stream (1-indexed)
        event_type: Name of the event, used to find the transition function
        payload: Serialized event data
        occurred_at: When the event was recorded (UTC timezone)
        metadata: String metadata (correlation_id, causation_id, ...)
        global_position: Position in the store-wide log, assigned on commit

    Examples:
        >>> record = EventRecord(
        ...     stream_id="acct-1",
        ...     sequence_number=1,
        ...     event_type="AccountOpened",
        ...     payload=b'{"balance": 100}',
        ... )
    """

    model_config = ConfigDict(frozen=True)

    event_id: ULID = Field(default_factory=ULID)
    stream_id: str = Field(min_length=1)
    sequence_number: int = Field(ge=1)
    event_type: str = Field(min_length=1)
    payload: bytes
    occurred_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, str] = Field(default_factory=dict)
    global_position: int | None = Field(default=None, ge=1)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, EventRecord):
            return NotImplemented
        return (self.stream_id, self.sequence_number) == (
            other.stream_id,
            other.sequence_number,
        )

    def __hash__(self) -> int:
        return hash((self.stream_id, self.sequence_number))

    def decode(self, model_type: type[T]) -> T:
        """Deserialize the payload into ``model_type``."""
        return model_type.model_validate_json(self.payload)
