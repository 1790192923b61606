"""Read side: projections, their runtime and query access."""

from .cursor import CursorStore, InMemoryCursorStore
from .engine import ProjectionEngine
from .projection import Projection
from .query import QueryService, ReadModelView
from .runner import ProjectionRunner

__all__ = [
    "CursorStore",
    "InMemoryCursorStore",
    "Projection",
    "ProjectionEngine",
    "ProjectionRunner",
    "QueryService",
    "ReadModelView",
]
