"""Domain primitives for event sourcing and CQRS.

This module contains the core building blocks that users extend to create
their domain models:

- EventRecord: Immutable envelope of a committed event
- NewEvent: A decided event waiting to be appended
- Aggregate: Base class for domain aggregates folded from their stream
- Command: Base class for command messages (write side)
- Query: Base class for query messages (read side)
- Typed errors for the append -> project -> query path
"""

from .aggregate import Aggregate
from .command import ANY_VERSION, Command
from .event import EventRecord, NewEvent, event_type_name, utc_now
from .exceptions import (
    ChronicleError,
    ConcurrencyConflict,
    DomainRuleViolation,
    ProjectionApplyFailure,
    ProjectionLagTimeout,
    StreamNotFound,
    UnknownEventType,
)
from .query import Query

__all__ = [
    "ANY_VERSION",
    "Aggregate",
    "Command",
    "EventRecord",
    "NewEvent",
    "Query",
    "event_type_name",
    "utc_now",
    "ChronicleError",
    "ConcurrencyConflict",
    "DomainRuleViolation",
    "ProjectionApplyFailure",
    "ProjectionLagTimeout",
    "StreamNotFound",
    "UnknownEventType",
]
