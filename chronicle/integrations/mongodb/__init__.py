"""MongoDB integration for chronicle.

Installation:
    pip install chronicle[mongodb]

Usage:
    >>> from chronicle.integrations.mongodb import (
    ...     MongoConfiguration,
    ...     MongoCursorStore,
    ...     MongoEventStore,
    ... )
    >>>
    >>> config = MongoConfiguration(uri="mongodb://localhost:27017", database="ledger")
    >>> event_store = MongoEventStore(config)
    >>> await event_store.initialize_schema()
    >>> cursor_store = MongoCursorStore(config)
"""

from .config import MongoConfiguration
from .cursor_store import MongoCursorStore
from .event_store import MongoEventStore

__all__ = [
    "MongoConfiguration",
    "MongoCursorStore",
    "MongoEventStore",
]
