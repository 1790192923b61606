import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import ValidationError

from .aggregates import (
    AggregateRepository,
    AggregateSnapshotStorageBackend,
    AggregateSnapshotStrategy,
)
from .commands import (
    AggregateToRepositoryMap,
    CommandBus,
    CommandResult,
    CommandToAggregateMap,
    ConcurrencyRetryMiddleware,
    ContextPropagationMiddleware,
    DelegateToAggregate,
    LoggingMiddleware,
    Middleware,
)
from .config import ChronicleSettings
from .domain import Aggregate, ChronicleError, Command, Query
from .projections import (
    CursorStore,
    InMemoryCursorStore,
    Projection,
    ProjectionEngine,
    QueryService,
    ReadModelView,
)
from .store import EventStore, InMemoryEventStore

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class HasLifecycle(Protocol):
    async def on_startup(self) -> None:
        """Called when the application is started."""
        ...

    async def on_shutdown(self) -> None:
        """Called when the application is shutdown."""
        ...


class Application:
    """Entry point for the write and read sides of a chronicle system.

    Commands go through ``dispatch`` or ``submit_command``; read models are
    queried through ``query``. Entering the application as an async context
    manager starts registered dependencies and the projection engine, and
    leaving it stops them again.
    """

    def __init__(
        self,
        settings: ChronicleSettings,
        event_store: EventStore,
        command_bus: CommandBus,
        command_to_aggregate_map: CommandToAggregateMap,
        projection_engine: ProjectionEngine,
        dependencies: list[object],
    ):
        self.settings = settings
        self.event_store = event_store
        self.command_bus = command_bus
        self.command_to_aggregate_map = command_to_aggregate_map
        self.projection_engine = projection_engine
        self.dependencies = dependencies

    async def dispatch(self, command: Command) -> CommandResult:
        """Dispatch a command to the application.

        The command goes through the middleware chain to the aggregate that
        handles its type.

        Raises:
            ConcurrencyConflict: If the command could not be committed.
            DomainRuleViolation: If the aggregate rejected the command.
        """
        return await self.command_bus.dispatch(command)

    async def submit_command(
        self,
        stream_id: str,
        expected_version: int | None,
        command_type: str,
        payload: Mapping[str, Any],
    ) -> CommandResult:
        """Submit a command by name, reporting failures in the result.

        Args:
            stream_id: The stream the command targets.
            expected_version: The version the caller last saw, or
                ``ANY_VERSION``.
            command_type: Class name of a registered command.
            payload: The command's remaining fields.

        Returns:
            A successful result with the committed version and records, or a
            failed result whose ``error.kind`` names what went wrong.
        """
        try:
            command_cls = self.command_to_aggregate_map.command_type(command_type)
        except KeyError:
            return self._failed(
                stream_id,
                command_type,
                "unknown_command",
                f"Unknown command type '{command_type}'",
            )

        try:
            command = command_cls.model_validate(
                {**payload, "stream_id": stream_id, "expected_version": expected_version}
            )
        except ValidationError as e:
            return self._failed(stream_id, command_type, "invalid_command", str(e))

        try:
            return await self.dispatch(command)
        except ChronicleError as e:
            return self._failed(stream_id, command_type, e.kind, e.detail)

    def query_service(self, projection_name: str) -> QueryService:
        """Get read-only access to a projection.

        Raises:
            KeyError: If no projection of that name is registered.
        """
        return QueryService(
            self.projection_engine.runner(projection_name),
            default_timeout=self.settings.query_wait_timeout,
        )

    async def query(
        self,
        projection_name: str,
        query: Query[T],
        wait_for_position: int | None = None,
        timeout: float | None = None,
    ) -> ReadModelView[T]:
        """Answer a query from a projection's read model.

        Raises:
            ProjectionLagTimeout: If ``wait_for_position`` was not reached in time.
        """
        return await self.query_service(projection_name).query(
            query, wait_for_position=wait_for_position, timeout=timeout
        )

    async def catch_up(self) -> dict[str, int]:
        """Bring every projection up to the current head of the log."""
        return await self.projection_engine.catch_up()

    async def startup(self) -> None:
        """Start dependencies in registration order, then the projections."""
        for dependency in self.dependencies:
            if isinstance(dependency, HasLifecycle):
                await dependency.on_startup()
        await self.projection_engine.start()

    async def shutdown(self) -> None:
        """Stop the projections, then dependencies in reverse order."""
        try:
            await self.projection_engine.stop()
        finally:
            for dependency in reversed(self.dependencies):
                if isinstance(dependency, HasLifecycle):
                    await dependency.on_shutdown()

    async def __aenter__(self) -> "Application":
        await self.startup()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _traceback: TracebackType | None,
    ) -> None:
        await self.shutdown()

    def _failed(self, stream_id: str, command_type: str, kind: str, detail: str) -> CommandResult:
        LOGGER.warning(
            "Command failed: %s",
            detail,
            extra={"stream_id": stream_id, "command_type": command_type, "error_kind": kind},
        )
        return CommandResult.failed(kind, detail)


class ApplicationBuilder:
    """Builder for creating Application instances.

    Defaults to an in-memory event store and cursor store. The command
    middleware chain always starts with context propagation, logging and
    concurrency retries; registered middleware runs inside them.

    Example:
        >>> app = (
        ...     ApplicationBuilder()
        ...     .register_aggregate(BankAccount)
        ...     .register_projection(AccountBalances())
        ...     .build()
        ... )
    """

    def __init__(self, settings: ChronicleSettings | None = None) -> None:
        self.settings = settings or ChronicleSettings()
        self.event_store: EventStore | None = None
        self.cursor_store: CursorStore | None = None
        self.aggregates: dict[
            type[Aggregate],
            tuple[AggregateSnapshotStrategy | None, AggregateSnapshotStorageBackend | None],
        ] = {}
        self.middleware: list[Middleware] = []
        self.projections: list[Projection] = []
        self.dependencies: list[object] = []

    def with_settings(self, settings: ChronicleSettings) -> "ApplicationBuilder":
        self.settings = settings
        return self

    def with_event_store(self, event_store: EventStore) -> "ApplicationBuilder":
        self.event_store = event_store
        return self

    def with_cursor_store(self, cursor_store: CursorStore) -> "ApplicationBuilder":
        self.cursor_store = cursor_store
        return self

    def register_dependency(self, dependency: object) -> "ApplicationBuilder":
        """Register an object whose lifecycle follows the application's.

        Objects implementing ``HasLifecycle`` are started with the
        application in registration order and shut down in reverse order.
        """
        self.dependencies.append(dependency)
        return self

    def register_aggregate(
        self,
        aggregate_type: type[Aggregate],
        snapshot_strategy: AggregateSnapshotStrategy | None = None,
        snapshot_backend: AggregateSnapshotStorageBackend | None = None,
    ) -> "ApplicationBuilder":
        """Register an aggregate and the commands it handles.

        Registering the same aggregate again replaces its snapshot
        configuration.
        """
        self.aggregates[aggregate_type] = (snapshot_strategy, snapshot_backend)
        return self

    def register_middleware(self, middleware: Middleware) -> "ApplicationBuilder":
        self.middleware.append(middleware)
        return self

    def register_projection(self, projection: Projection) -> "ApplicationBuilder":
        self.projections.append(projection)
        return self

    def build(self) -> Application:
        """Wire the registered components into an Application.

        Raises:
            ValueError: If two projections share a name.
        """
        event_store = self.event_store or InMemoryEventStore()
        cursor_store = self.cursor_store or InMemoryCursorStore()

        command_to_aggregate_map = CommandToAggregateMap.from_aggregates(list(self.aggregates))
        aggregate_to_repository_map = AggregateToRepositoryMap.from_repositories(
            [
                AggregateRepository(aggregate_type, event_store, strategy, backend)
                for aggregate_type, (strategy, backend) in self.aggregates.items()
            ]
        )
        command_bus = CommandBus(
            DelegateToAggregate(command_to_aggregate_map, aggregate_to_repository_map),
            [
                ContextPropagationMiddleware(),
                LoggingMiddleware(self.settings.log_level),
                ConcurrencyRetryMiddleware(
                    max_retries=self.settings.command_max_retries,
                    retry_delay=self.settings.command_retry_delay,
                ),
                *self.middleware,
            ],
        )

        engine = ProjectionEngine(
            event_store,
            cursor_store,
            batch_size=self.settings.projection_batch_size,
            max_attempts=self.settings.projection_max_attempts,
            retry_backoff=self.settings.projection_retry_backoff,
            max_backoff=self.settings.projection_max_backoff,
            idle_timeout=self.settings.projection_idle_timeout,
        )
        for projection in self.projections:
            engine.add(projection)

        return Application(
            self.settings,
            event_store,
            command_bus,
            command_to_aggregate_map,
            engine,
            list(self.dependencies),
        )
