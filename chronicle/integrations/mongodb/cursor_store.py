"""MongoDB implementation of CursorStore."""

from ...projections import CursorStore
from .collection import IndexedCollection
from .config import MongoConfiguration


class MongoCursorStore(CursorStore):
    """MongoDB-backed projection cursors.

    Document schema:
        {
            "_id": "projection name",
            "position": 42
        }
    """

    def __init__(self, config: MongoConfiguration) -> None:
        # No indexes needed - _id is indexed by default
        self._collection = IndexedCollection(config.cursors)

    async def load_cursor(self, projection_name: str) -> int:
        doc = await self._collection.find_one({"_id": projection_name})
        return doc["position"] if doc else 0

    async def save_cursor(self, projection_name: str, position: int) -> None:
        await self._collection.replace_one(
            {"_id": projection_name},
            {"_id": projection_name, "position": position},
            upsert=True,
        )
