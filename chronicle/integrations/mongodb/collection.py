"""Thin wrapper over an async MongoDB collection that owns its indexes."""

from collections.abc import AsyncIterator
from enum import IntEnum
from typing import Any

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection

Document = dict[str, Any]


class IndexDirection(IntEnum):
    ASC = ASCENDING
    DESC = DESCENDING


class IndexSpec(BaseModel):
    """A compound index a store relies on.

    Example:
        >>> IndexSpec(
        ...     keys=[("stream_id", IndexDirection.ASC), ("first_sequence", IndexDirection.ASC)],
        ...     unique=True,
        ... )
    """

    keys: list[tuple[str, IndexDirection]]
    unique: bool = False

    async def apply(self, collection: AsyncCollection[Document]) -> None:
        if self.unique:
            await collection.create_index(self.keys, unique=True)
        else:
            await collection.create_index(self.keys)


class IndexedCollection:
    """A collection whose indexes exist before the first read or write.

    The stores built on top of it convert between documents and chronicle
    types; this class only runs the MongoDB operations they need.
    """

    def __init__(
        self,
        collection: AsyncCollection[Document],
        indexes: list[IndexSpec] | None = None,
    ) -> None:
        self._collection = collection
        self._indexes = indexes or []
        self._indexes_created = False

    async def ensure_indexes(self) -> None:
        """Create the indexes once per instance; create_index is idempotent on the server."""
        if self._indexes_created:
            return
        for index in self._indexes:
            await index.apply(self._collection)
        self._indexes_created = True

    async def find_one(self, filter: Document) -> Document | None:
        await self.ensure_indexes()
        document: Document | None = await self._collection.find_one(filter)
        return document

    async def find(
        self,
        filter: Document,
        sort: list[tuple[str, IndexDirection]],
    ) -> AsyncIterator[Document]:
        """Yield the documents matching ``filter`` in ``sort`` order."""
        await self.ensure_indexes()
        async for document in self._collection.find(filter).sort(sort):
            yield document

    async def find_latest(self, filter: Document, field: str) -> Document | None:
        """The matching document with the highest ``field``, if any."""
        await self.ensure_indexes()
        async for document in self._collection.find(filter).sort(field, DESCENDING).limit(1):
            latest: Document = document
            return latest
        return None

    async def insert_one(self, document: Document) -> None:
        await self.ensure_indexes()
        await self._collection.insert_one(document)

    async def replace_one(self, filter: Document, replacement: Document, upsert: bool = False) -> None:
        await self.ensure_indexes()
        await self._collection.replace_one(filter, replacement, upsert=upsert)
