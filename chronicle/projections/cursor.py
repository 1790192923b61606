"""Cursor storage for tracking projection progress."""

from abc import ABC, abstractmethod


class CursorStore(ABC):
    """Abstract interface for persisting projection cursors.

    A cursor is the global position of the last record a projection has
    applied. Runners save it after every applied record and resume from
    the position after it on restart.

    Implementations should make ``save_cursor`` an atomic replace of any
    existing cursor for the same projection.
    """

    @abstractmethod
    async def load_cursor(self, projection_name: str) -> int:
        """Load the cursor for a projection.

        Returns:
            The last applied global position, or 0 if the projection has
            never applied anything.
        """
        ...

    @abstractmethod
    async def save_cursor(self, projection_name: str, position: int) -> None:
        ...


class InMemoryCursorStore(CursorStore):
    """In-memory cursor storage for testing.

    Not suitable for production use as cursors are lost on restart.
    """

    def __init__(self) -> None:
        self._cursors: dict[str, int] = {}

    async def load_cursor(self, projection_name: str) -> int:
        return self._cursors.get(projection_name, 0)

    async def save_cursor(self, projection_name: str, position: int) -> None:
        self._cursors[projection_name] = position
