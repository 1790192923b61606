"""Central test fixtures - builds on the shared bank domain."""

import pytest

from chronicle import ApplicationBuilder, ChronicleSettings, InMemoryEventStore
from chronicle.aggregates import AggregateRepository
from chronicle.projections import InMemoryCursorStore
from tests.fixtures.bank import AccountBalances, AccountDirectory, BankAccount


@pytest.fixture
def stream_id() -> str:
    return "acct-1"


@pytest.fixture
def event_store() -> InMemoryEventStore:
    """Create an in-memory event store."""
    return InMemoryEventStore()


@pytest.fixture
def cursor_store() -> InMemoryCursorStore:
    return InMemoryCursorStore()


@pytest.fixture
def repository(event_store: InMemoryEventStore) -> AggregateRepository[BankAccount]:
    return AggregateRepository(BankAccount, event_store)


@pytest.fixture
def settings() -> ChronicleSettings:
    """Settings with fast retries and short waits for tests."""
    return ChronicleSettings(
        projection_retry_backoff=0.0,
        projection_idle_timeout=0.05,
        query_wait_timeout=1.0,
    )


@pytest.fixture
def bank_app_builder(
    settings: ChronicleSettings,
    event_store: InMemoryEventStore,
    cursor_store: InMemoryCursorStore,
) -> ApplicationBuilder:
    """Create an application builder with the bank domain registered."""
    return (
        ApplicationBuilder(settings)
        .with_event_store(event_store)
        .with_cursor_store(cursor_store)
        .register_aggregate(BankAccount)
        .register_projection(AccountBalances())
        .register_projection(AccountDirectory())
    )


@pytest.fixture
def bank_app(bank_app_builder: ApplicationBuilder):
    return bank_app_builder.build()
