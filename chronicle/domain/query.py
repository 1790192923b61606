"""Query base class for the read side of CQRS.

Queries represent requests for data and are dispatched to projections.
Unlike commands, queries do not mutate state - they return data.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field
from ulid import ULID

TResponse = TypeVar("TResponse")


class Query(BaseModel, Generic[TResponse]):
    """Base class for all queries in the system.

    Each query is generic over its response type, providing type safety
    for query handlers on projections.

    Type Parameters:
        TResponse: The type returned by query handlers for this query

    Attributes:
        query_id: Unique identifier for this query instance.
        correlation_id: Optional correlation ID for distributed tracing.

    Examples:
        >>> class GetBalance(Query[Decimal]):
        ...     stream_id: str
        >>>
        >>> class AccountBalances(Projection):
        ...     @handles_query
        ...     async def get_balance(self, query: GetBalance) -> Decimal:
        ...         return self.balances[query.stream_id]
    """

    query_id: ULID = Field(default_factory=ULID)
    correlation_id: ULID | None = None
