"""Pytest fixtures for MongoDB integration tests."""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from chronicle.integrations.mongodb import MongoConfiguration, MongoCursorStore, MongoEventStore

# Assumes a MongoDB container is running locally on port 27017
LOCAL_MONGO_URI = "mongodb://localhost:27017"


@pytest_asyncio.fixture
async def mongo_config(request: pytest.FixtureRequest) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration backed by a fresh database."""
    config = MongoConfiguration(
        uri=LOCAL_MONGO_URI,
        database=f"test_{request.node.name}"[:63],
    )
    await config.client.drop_database(config.database)
    try:
        yield config
    finally:
        await config.on_shutdown()


@pytest_asyncio.fixture
async def mongo_event_store(mongo_config: MongoConfiguration) -> MongoEventStore:
    store = MongoEventStore(mongo_config)
    await store.initialize_schema()
    return store


@pytest.fixture
def mongo_cursor_store(mongo_config: MongoConfiguration) -> MongoCursorStore:
    return MongoCursorStore(mongo_config)
