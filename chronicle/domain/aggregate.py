from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, ClassVar

from pydantic import BaseModel, Field
from typing_extensions import Self

from ..context import get_context
from ..routing import setup_command_routing, setup_event_applying
from .command import Command
from .event import EventRecord, NewEvent
from .exceptions import UnknownEventType

if TYPE_CHECKING:
    from ..routing import MessageRouter


class Aggregate(BaseModel):
    """Base class for all aggregates in the event sourcing system.

    An aggregate is reconstructed by folding its stream's events, starting
    from the zero-value state produced by ``Aggregate(stream_id=...)``. It
    only ever exists transiently while a command is being handled; its
    persisted form is its event history.

    Two kinds of methods are declared with decorators:

    - ``@applies_event`` methods are transition functions. Their annotation
      names the payload model, whose event type name is registered in a
      per-class dispatch table used to decode records on replay.
    - ``@handles_command`` methods hold the business rules. They reject a
      command by raising ``DomainRuleViolation`` or accept it by calling
      ``self.emit(...)`` once per resulting event. They must not perform
      I/O.

    Replay and decisions are pure from the caller's point of view:
    ``evolve``/``replay`` return a new aggregate and ``decide`` returns the
    new events, and neither mutates the aggregate it is called on.

    Examples:
        >>> class DepositMoney(Command):
        ...     amount: Decimal
        >>>
        >>> class MoneyDeposited(BaseModel):
        ...     amount: Decimal
        >>>
        >>> class BankAccount(Aggregate):
        ...     balance: Decimal = Decimal("0")
        ...
        ...     @handles_command
        ...     def deposit(self, cmd: DepositMoney) -> None:
        ...         if cmd.amount <= 0:
        ...             raise DomainRuleViolation("Amount must be positive")
        ...         self.emit(MoneyDeposited(amount=cmd.amount))
        ...
        ...     @applies_event
        ...     def apply_deposited(self, evt: MoneyDeposited) -> None:
        ...         self.balance += evt.amount
        >>>
        >>> account = BankAccount(stream_id="acct-1")
        >>> account.decide(DepositMoney(stream_id="acct-1", amount=Decimal("50")))
        [NewEvent(event_type='MoneyDeposited', payload=b'{"amount":"50"}', metadata={})]

    Attributes:
        stream_id: Identity of the stream this aggregate was folded from.
        version: Sequence number of the last applied event (0 when new).
        last_event_time: Timestamp of the last applied event.
        uncommitted_events: Events emitted while deciding. Excluded from
            serialization and always empty on aggregates returned by
            ``replay``.
    """

    stream_id: str
    version: int = 0
    last_event_time: datetime | None = None
    uncommitted_events: list[NewEvent] = Field(default_factory=list, exclude=True)

    # Class-level routing tables
    _command_router: ClassVar["MessageRouter"]
    _event_router: ClassVar["MessageRouter"]

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Set up command and event routing when a subclass is defined."""
        super().__init_subclass__(**kwargs)  # type: ignore[arg-type]
        cls._command_router = setup_command_routing(cls)
        cls._event_router = setup_event_applying(cls)

    @classmethod
    def event_types(cls) -> dict[str, type[BaseModel]]:
        """The dispatch table from event type names to payload models."""
        return cls._event_router.event_types

    def handle(self, command: Command) -> object:
        """Route a command to its registered handler method, in place.

        Raises:
            NotImplementedError: If no handler is registered for this command type.
        """
        return self._command_router.route(self, command)

    def apply(self, data: BaseModel, record: EventRecord | None = None) -> object:
        """Route an event payload to its registered applier method, in place."""
        return self._event_router.route(self, data, record=record)

    def emit(self, data: BaseModel) -> None:
        """Record a decided event and apply it to the working state.

        Called by command handlers. The event inherits correlation and
        causation ids from the current execution context.

        Args:
            data: The event data as a Pydantic model representing what happened.
        """
        self.uncommitted_events.append(NewEvent.from_model(data, get_context().as_metadata()))
        self.apply(data)

    def decide(self, command: Command) -> list[NewEvent]:
        """Run business logic for a command without mutating this aggregate.

        Args:
            command: The command to decide.

        Returns:
            The events the command produces, in order. May be empty.

        Raises:
            DomainRuleViolation: If a business rule rejects the command.
            NotImplementedError: If the aggregate has no handler for the command.
        """
        working = self.model_copy(deep=True)
        working.uncommitted_events = []
        working.handle(command)
        return list(working.uncommitted_events)

    def replay(self, records: Iterable[EventRecord]) -> Self:
        """Fold committed records over this state and return the result.

        Args:
            records: Records of this aggregate's stream, in sequence order,
                starting right after ``self.version``.

        Returns:
            A new aggregate; ``self`` is left untouched.

        Raises:
            UnknownEventType: If a record's event type has no applier.
            ValueError: If the records are not contiguous with this state.
        """
        folded = self.model_copy(deep=True)
        folded.uncommitted_events = []
        for record in records:
            folded._apply_record(record)
        return folded

    def evolve(self, record: EventRecord) -> Self:
        """Pure transition for a single record: ``evolve(state, event) -> state``."""
        return self.replay([record])

    def _apply_record(self, record: EventRecord) -> None:
        if record.sequence_number != self.version + 1:
            raise ValueError(
                f"Record {record.sequence_number} of stream '{record.stream_id}' does not "
                f"follow version {self.version}"
            )
        model_type = self._event_router.event_type(record.event_type)
        if model_type is None:
            raise UnknownEventType(record.event_type, type(self).__name__)
        self.apply(record.decode(model_type), record=record)
        self.version = record.sequence_number
        self.last_event_time = record.occurred_at
