"""MongoDB configuration using pydantic-settings."""

from functools import cached_property
from typing import Any

from pydantic_settings import BaseSettings
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.asynchronous.mongo_client import AsyncMongoClient


class MongoConfiguration(BaseSettings):
    """Configuration and factory for MongoDB resources.

    Implements the HasLifecycle protocol so that an Application closes the
    client on shutdown.

    All settings can be configured via environment variables with the
    CHRONICLE_MONGO_ prefix. For example:
    - CHRONICLE_MONGO_URI=mongodb://localhost:27017
    - CHRONICLE_MONGO_DATABASE=ledger
    - CHRONICLE_MONGO_COMMITS_COLLECTION=ledger_commits

    Attributes:
        uri: MongoDB connection URI.
        database: Database name to use.
        commits_collection: Collection holding one document per append.
        cursors_collection: Collection holding projection cursors.

    Example:
        >>> config = MongoConfiguration()
        >>> store = MongoEventStore(config)
        >>> await store.initialize_schema()
        >>>
        >>> app = (
        ...     ApplicationBuilder()
        ...     .with_event_store(store)
        ...     .register_dependency(config)
        ...     .build()
        ... )
        >>> async with app:  # calls on_startup/on_shutdown
        ...     ...
    """

    # Connection settings
    uri: str = "mongodb://localhost:27017"
    database: str = "chronicle"

    # Collection names
    commits_collection: str = "commits"
    cursors_collection: str = "projection_cursors"

    model_config = {"env_prefix": "CHRONICLE_MONGO_"}

    @cached_property
    def client(self) -> AsyncMongoClient[dict[str, Any]]:
        """Get the MongoDB async client.

        The client is lazily created and cached for reuse. Datetimes are
        returned timezone-aware so that record timestamps round-trip.
        """
        return AsyncMongoClient(self.uri, tz_aware=True)

    @cached_property
    def db(self) -> AsyncDatabase[dict[str, Any]]:
        return self.client[self.database]

    @cached_property
    def commits(self) -> AsyncCollection[dict[str, Any]]:
        """Get the commits collection."""
        return self.db[self.commits_collection]

    @cached_property
    def cursors(self) -> AsyncCollection[dict[str, Any]]:
        """Get the projection cursors collection."""
        return self.db[self.cursors_collection]

    # HasLifecycle protocol implementation

    async def on_startup(self) -> None:
        """No-op for MongoDB - connections are established lazily."""
        pass

    async def on_shutdown(self) -> None:
        """Closes the MongoDB client connection if it was created."""
        if "client" in self.__dict__:
            await self.client.close()
