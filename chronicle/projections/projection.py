"""Projection base class for building read models with query support.

Projections combine event handling with query handling, providing a unified
abstraction for the read side of CQRS.
"""

import inspect
from typing import TYPE_CHECKING, ClassVar, TypeVar

from pydantic import BaseModel
from ulid import ULID

from ..context import ExecutionContext, clear_context, set_context
from ..domain import EventRecord, Query
from ..routing import setup_event_handling, setup_query_routing

if TYPE_CHECKING:
    from ..routing import MessageRouter

T = TypeVar("T")


def _parse_correlation_id(record: EventRecord) -> ULID | None:
    """Read the correlation id written by ContextPropagationMiddleware.

    Records from other producers may carry correlation ids in another
    format. Those are not restored; the record is still applied.
    """
    value = record.metadata.get("correlation_id")
    if not value:
        return None
    try:
        return ULID.from_str(value)
    except ValueError:
        return None


class Projection:
    """Base class for read models that handle events and serve queries.

    Projections are the read side of CQRS. They:
    1. Consume committed records in global-position order and update their
       internal state (read model)
    2. Serve queries by returning data from their read model

    Unlike aggregates which enforce invariants and emit events, projections
    are optimized for reads. They maintain denormalized views that can be
    queried efficiently, and lag behind the event store by design.

    **Event Handling:**
    Use @handles_event to mark methods that process events. The annotation
    names the payload model; records of any other event type are skipped.
    A handler that declares a second parameter also receives the record:

    ```python
    @handles_event
    async def on_deposit(self, event: MoneyDeposited, record: EventRecord) -> None:
        if self.already_applied(record):
            return
        self.balances[record.stream_id] += event.amount
    ```

    **Idempotence:**
    The cursor is saved after each record is applied, so a crash between
    the two replays that record. Handlers must tolerate this, either by
    being naturally idempotent (set rather than add) or by guarding with
    ``already_applied``.

    **Query Handling:**
    Use @handles_query to mark methods that serve queries:

    ```python
    @handles_query
    async def get_balance(self, query: GetBalance) -> Decimal:
        return self.balances[query.stream_id]
    ```

    Attributes:
        name: Identity of the projection; keys its persisted cursor.
    """

    # Class-level routing tables
    _event_router: ClassVar["MessageRouter"]
    _query_router: ClassVar["MessageRouter"]

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Set up event and query routing when a subclass is defined."""
        super().__init_subclass__(**kwargs)
        cls._event_router = setup_event_handling(cls)
        cls._query_router = setup_query_routing(cls)

    def __init__(self, name: str | None = None) -> None:
        self.name = name or type(self).__name__
        self._applied_versions: dict[str, int] = {}

    @classmethod
    def event_types(cls) -> dict[str, type[BaseModel]]:
        """The dispatch table from event type names to payload models."""
        return cls._event_router.event_types

    def handles(self, record: EventRecord) -> bool:
        return self._event_router.event_type(record.event_type) is not None

    def already_applied(self, record: EventRecord) -> bool:
        """Whether a record of this stream at or past ``record`` was applied.

        Only records applied by this instance are tracked; a projection that
        persists its read model should also persist what it has applied.
        """
        return self._applied_versions.get(record.stream_id, 0) >= record.sequence_number

    async def apply(self, record: EventRecord) -> bool:
        """Decode ``record`` and route it to its handler.

        The record's correlation id and event id are restored as the
        execution context while the handler runs.

        Returns:
            False if the projection has no handler for the record's event
            type, True once the handler completed.
        """
        model_type = self._event_router.event_type(record.event_type)
        if model_type is None:
            return False

        payload = record.decode(model_type)
        context = ExecutionContext(correlation_id=_parse_correlation_id(record))
        set_context(context.for_event(record.event_id))
        try:
            result = self._event_router.route(self, payload, record=record)
            if inspect.isawaitable(result):
                await result
        finally:
            clear_context()

        current = self._applied_versions.get(record.stream_id, 0)
        self._applied_versions[record.stream_id] = max(current, record.sequence_number)
        return True

    async def query(self, query: Query[T]) -> T:
        """Route a query to its registered handler method.

        Raises:
            NotImplementedError: If no handler is registered for the query.
        """
        result = self._query_router.route(self, query)

        # If the handler is async, await the coroutine
        if inspect.iscoroutine(result):
            result = await result
        return result  # type: ignore[return-value]
