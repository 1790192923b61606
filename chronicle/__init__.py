"""Chronicle - event store, aggregate replay and projection pipeline.

This module provides the public API for building event-sourced applications.
"""

from .application import Application, ApplicationBuilder
from .commands import CommandError, CommandResult
from .config import ChronicleSettings
from .domain import (
    ANY_VERSION,
    Aggregate,
    ChronicleError,
    Command,
    ConcurrencyConflict,
    DomainRuleViolation,
    EventRecord,
    NewEvent,
    ProjectionApplyFailure,
    ProjectionLagTimeout,
    Query,
    StreamNotFound,
    UnknownEventType,
)
from .projections import Projection, ReadModelView
from .routing import (
    applies_event,
    handles_command,
    handles_event,
    handles_query,
    intercepts,
)
from .store import EventStore, InMemoryEventStore

__all__ = [
    # Application
    "Application",
    "ApplicationBuilder",
    "ChronicleSettings",
    "CommandError",
    "CommandResult",
    # Domain primitives
    "ANY_VERSION",
    "Aggregate",
    "Command",
    "EventRecord",
    "NewEvent",
    "Query",
    # Storage and read side
    "EventStore",
    "InMemoryEventStore",
    "Projection",
    "ReadModelView",
    # Errors
    "ChronicleError",
    "ConcurrencyConflict",
    "DomainRuleViolation",
    "ProjectionApplyFailure",
    "ProjectionLagTimeout",
    "StreamNotFound",
    "UnknownEventType",
    # Decorators
    "applies_event",
    "handles_command",
    "handles_event",
    "handles_query",
    "intercepts",
]
