from .bus import (
    AggregateToRepositoryMap,
    CommandBus,
    CommandToAggregateMap,
    DelegateToAggregate,
)
from .middleware import (
    ConcurrencyRetryMiddleware,
    ContextPropagationMiddleware,
    Handler,
    LoggingMiddleware,
    Middleware,
)
from .result import CommandError, CommandResult, CommandState

__all__ = [
    "AggregateToRepositoryMap",
    "CommandBus",
    "CommandError",
    "CommandResult",
    "CommandState",
    "CommandToAggregateMap",
    "ConcurrencyRetryMiddleware",
    "ContextPropagationMiddleware",
    "DelegateToAggregate",
    "Handler",
    "LoggingMiddleware",
    "Middleware",
]
