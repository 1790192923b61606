"""Read-only access to projections."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from ..domain import ProjectionLagTimeout, Query
from .projection import Projection
from .runner import ProjectionRunner

T = TypeVar("T")


@dataclass(frozen=True)
class ReadModelView(Generic[T]):
    """A query result together with how fresh it is.

    Attributes:
        projection_name: The projection that answered the query.
        position: The projection's cursor when the query was answered. The
            result reflects at least every record up to this position.
        result: The query handler's return value.
    """

    projection_name: str
    position: int
    result: T


class QueryService:
    """Serves queries from a single projection's read model.

    Reads never touch the event store. A caller that just committed a
    command can pass the command's global position as
    ``wait_for_position`` to read its own writes.
    """

    def __init__(self, runner: ProjectionRunner[Projection], default_timeout: float = 5.0) -> None:
        self.runner = runner
        self.default_timeout = default_timeout

    @property
    def projection_name(self) -> str:
        return self.runner.name

    async def query(
        self,
        query: Query[T],
        wait_for_position: int | None = None,
        timeout: float | None = None,
    ) -> ReadModelView[T]:
        """Answer ``query`` from the projection's current state.

        Args:
            query: The query to dispatch to the projection.
            wait_for_position: Only answer once the projection has applied
                every record up to this global position.
            timeout: Seconds to wait for ``wait_for_position``; defaults to
                ``default_timeout``.

        Raises:
            ProjectionLagTimeout: If the projection did not reach
                ``wait_for_position`` in time.
            NotImplementedError: If the projection does not handle the query.
        """
        if wait_for_position is not None:
            if timeout is None:
                timeout = self.default_timeout
            if not await self.runner.wait_for_position(wait_for_position, timeout):
                raise ProjectionLagTimeout(self.projection_name, self.runner.position, wait_for_position)

        position = self.runner.position
        result = await self.runner.projection.query(query)
        return ReadModelView(projection_name=self.projection_name, position=position, result=result)
