"""Building blocks shared by the aggregate and projection scenarios."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from typing_extensions import Self

from ..domain import EventRecord, NewEvent

TState = TypeVar("TState")


def records_for(
    stream_id: str,
    payloads: Sequence[BaseModel],
    first_sequence: int = 1,
    first_position: int = 1,
) -> list[EventRecord]:
    """Build committed records for ``payloads`` as if appended to ``stream_id``."""
    records = []
    for offset, payload in enumerate(payloads):
        new_event = NewEvent.from_model(payload)
        records.append(
            EventRecord(
                stream_id=stream_id,
                sequence_number=first_sequence + offset,
                event_type=new_event.event_type,
                payload=new_event.payload,
                global_position=first_position + offset,
            )
        )
    return records


@dataclass
class Result:
    """What a scenario produced: emitted payloads, collected errors and requested states."""

    events: list[BaseModel]
    errors: list[Exception]
    states: dict[Any, Any] = field(default_factory=dict)


class Expectation(ABC):
    @abstractmethod
    def was_met(self, result: Result) -> bool: ...

    @abstractmethod
    def describe(self) -> str: ...

    def requires_state(self) -> Iterable[Any]:
        return ()

    def expects_errors(self) -> bool:
        return False

    def assert_met(self, result: Result) -> None:
        if not self.was_met(result):
            raise AssertionError(f"Expectation not met: {self.describe()}")


class ContainsEventOfExactPayload(Expectation):
    def __init__(self, payload: BaseModel):
        self.payload = payload

    def was_met(self, result: Result) -> bool:
        return self.payload in result.events

    def describe(self) -> str:
        return f"should emit {self.payload!r}"


class ContainsEventOfExactType(Expectation):
    def __init__(self, event_type: type[BaseModel]):
        self.event_type = event_type

    def was_met(self, result: Result) -> bool:
        return any(isinstance(event, self.event_type) for event in result.events)

    def describe(self) -> str:
        return f"should emit an event of type {self.event_type.__name__}"


class ContainsErrorOfExactType(Expectation):
    def __init__(self, error_type: type[Exception]):
        self.error_type = error_type

    def was_met(self, result: Result) -> bool:
        return any(isinstance(error, self.error_type) for error in result.errors)

    def describe(self) -> str:
        return f"should raise {self.error_type.__name__}"

    def expects_errors(self) -> bool:
        return True


class DoesNotHaveEvents(Expectation):
    def was_met(self, result: Result) -> bool:
        return not result.events

    def describe(self) -> str:
        return "should not emit any events"


class StateMatches(Expectation):
    """Checks a piece of state the scenario looks up by ``state_key``."""

    def __init__(self, state_key: Any, predicate: Callable[[Any], bool], label: str = "state"):
        self.state_key = state_key
        self.predicate = predicate
        self.label = label

    def was_met(self, result: Result) -> bool:
        return self.state_key in result.states and self.predicate(result.states[self.state_key])

    def describe(self) -> str:
        return f"{self.label} {self.state_key} should satisfy the predicate"

    def requires_state(self) -> Iterable[Any]:
        return (self.state_key,)


class Scenario(ABC, Generic[TState]):
    """Given/when/then test harness, used as an async context manager.

    Expectations are checked when the ``async with`` block exits. Errors
    raised by the system under test are collected; unless a
    ``should_raise`` expectation was registered the first one is re-raised.
    """

    def __init__(self) -> None:
        self.event_payloads: list[BaseModel] = []
        self.expectations: list[Expectation] = []
        self.errors: list[Exception] = []

    async def get_state(self, state_key: Any) -> TState | None:
        return None

    def given(self, *events: BaseModel) -> Self:
        self.event_payloads.extend(events)
        return self

    def given_no_events(self) -> Self:
        self.event_payloads = []
        return self

    def should_raise(self, error_type: type[Exception]) -> Self:
        self.expectations.append(ContainsErrorOfExactType(error_type))
        return self

    @abstractmethod
    async def perform_actions(self) -> None: ...

    async def execute_scenario(self) -> None:
        await self.perform_actions()

        if self.errors and not any(e.expects_errors() for e in self.expectations):
            raise self.errors[0]

        result = Result(events=self.event_payloads, errors=self.errors)
        for expectation in self.expectations:
            for state_key in expectation.requires_state():
                result.states[state_key] = await self.get_state(state_key)
        for expectation in self.expectations:
            expectation.assert_met(result)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_value is None:
            await self.execute_scenario()
