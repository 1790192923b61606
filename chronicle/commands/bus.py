"""Command bus and routing infrastructure."""

import logging
from collections.abc import Callable, Coroutine
from functools import reduce
from typing import Any

from ..aggregates import AggregateRepository
from ..domain import ANY_VERSION, Aggregate, Command, ConcurrencyConflict, DomainRuleViolation
from .middleware import Middleware
from .result import CommandResult, CommandState

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[[Command], Coroutine[Any, Any, CommandResult]]


class CommandToAggregateMap:
    @staticmethod
    def from_aggregates(
        aggregates: list[type[Aggregate]],
    ) -> "CommandToAggregateMap":
        map = CommandToAggregateMap()
        for aggregate in aggregates:
            map.add(aggregate)
        return map

    def __init__(self) -> None:
        self.command_to_aggregate_map: dict[type[Command], type[Aggregate]] = {}
        self.command_types_by_name: dict[str, type[Command]] = {}

    def add(self, aggregate_type: type[Aggregate]) -> None:
        for klass in aggregate_type.__mro__:
            for value in klass.__dict__.values():
                if hasattr(value, "_handles_command_type"):
                    command_type = value._handles_command_type
                    self.command_to_aggregate_map.setdefault(command_type, aggregate_type)
                    self.command_types_by_name.setdefault(command_type.__name__, command_type)

    def get(self, command_type: type[Command]) -> type[Aggregate]:
        return self.command_to_aggregate_map[command_type]

    def command_type(self, name: str) -> type[Command]:
        """Look up a command class by its name.

        Raises:
            KeyError: If no registered aggregate handles a command of that name.
        """
        return self.command_types_by_name[name]


class AggregateToRepositoryMap:
    @staticmethod
    def from_repositories(
        repositories: list[AggregateRepository[Any]],
    ) -> "AggregateToRepositoryMap":
        map = AggregateToRepositoryMap()
        for repository in repositories:
            map.add(repository)
        return map

    def __init__(self) -> None:
        self.aggregate_to_repository_map: dict[type[Aggregate], AggregateRepository[Any]] = {}

    def add(self, repository: AggregateRepository[Any]) -> None:
        self.aggregate_to_repository_map[repository.aggregate_type] = repository

    def get(self, aggregate_type: type[Aggregate]) -> AggregateRepository[Any]:
        return self.aggregate_to_repository_map[aggregate_type]


def _log_state(command: Command, state: CommandState, **extra: object) -> None:
    LOGGER.debug(
        "Command %s",
        state.value,
        extra={
            "command_type": type(command).__name__,
            "stream_id": command.stream_id,
            "command_state": state.value,
            **extra,
        },
    )


class DelegateToAggregate:
    """Root handler: load, decide and commit a single command.

    Nothing is written before the final append, so a command that is
    rejected or cancelled part way leaves the store untouched.
    """

    def __init__(
        self,
        command_to_aggregate_map: CommandToAggregateMap,
        aggregate_to_repository_map: AggregateToRepositoryMap,
    ):
        self.command_to_aggregate_map = command_to_aggregate_map
        self.aggregate_to_repository_map = aggregate_to_repository_map

    async def handle(self, command: Command) -> CommandResult:
        """Handle ``command`` against the current state of its stream.

        Raises:
            ConcurrencyConflict: If the caller's ``expected_version`` does not
                match the loaded version (not retryable), or another writer
                committed to the stream after it was loaded (retryable).
            DomainRuleViolation: If the aggregate rejects the command.
        """
        _log_state(command, CommandState.RECEIVED)
        aggregate_type = self.command_to_aggregate_map.get(type(command))
        repository = self.aggregate_to_repository_map.get(aggregate_type)

        aggregate, version = await repository.reconstruct(command.stream_id)
        _log_state(command, CommandState.LOADED, version=version)

        if command.expected_version is not ANY_VERSION and command.expected_version != version:
            _log_state(command, CommandState.REJECTED, version=version)
            raise ConcurrencyConflict(
                command.stream_id, command.expected_version, version, retryable=False
            )

        try:
            new_events = aggregate.decide(command)
        except DomainRuleViolation:
            _log_state(command, CommandState.REJECTED, version=version)
            raise
        _log_state(command, CommandState.DECIDED, event_count=len(new_events))

        if not new_events:
            _log_state(command, CommandState.COMMITTED, version=version)
            return CommandResult.unchanged(version)

        records = await repository.commit(aggregate, new_events, expected_version=version)
        result = CommandResult.committed(records)
        _log_state(
            command,
            CommandState.COMMITTED,
            version=result.committed_version,
            global_position=result.global_position,
        )
        return result


class CommandBus:
    """Runs commands through the middleware chain into the root handler.

    The first middleware in the list is the outermost. A middleware that has
    no interceptor for a command type passes it straight on.
    """

    def __init__(
        self,
        root_handler: DelegateToAggregate,
        middleware: list[Middleware],
    ):
        self.root_handler = root_handler
        self.middleware = middleware
        # Wrap from the root handler outwards
        self.chain: CommandHandler = reduce(
            lambda next, mw: lambda cmd, n=next, m=mw: m.intercept(cmd, n),
            reversed(middleware),
            self.root_handler.handle,
        )

    async def dispatch(self, command: Command) -> CommandResult:
        """Dispatch command through the middleware chain to its aggregate.

        Returns:
            The committed version, global position and records.
        """
        return await self.chain(command)
