import asyncio
import logging

import pytest

from chronicle.domain import EventRecord, NewEvent, ProjectionApplyFailure
from chronicle.projections import InMemoryCursorStore, Projection, ProjectionRunner
from chronicle.routing import handles_event
from chronicle.store import InMemoryEventStore
from tests.fixtures.bank import AccountBalances, AccountOpened, MoneyDeposited


class FlakyProjection(Projection):
    """Fails the first ``failures`` deliveries of every deposit."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0
        self.total = 0

    @handles_event
    async def on_deposited(self, event: MoneyDeposited) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise RuntimeError("read model unavailable")
        self.total += event.amount


async def append_history(event_store: InMemoryEventStore) -> None:
    await event_store.append(
        "acct-1",
        0,
        [
            NewEvent.from_model(AccountOpened(balance=100)),
            NewEvent.from_model(MoneyDeposited(amount=50)),
        ],
    )
    await event_store.append("acct-2", 0, [NewEvent.from_model(AccountOpened(balance=7))])


def make_runner(projection, event_store, cursor_store=None, **kwargs) -> ProjectionRunner:
    kwargs.setdefault("retry_backoff", 0.0)
    return ProjectionRunner(projection, event_store, cursor_store or InMemoryCursorStore(), **kwargs)


def test_runner_validates_arguments(event_store):
    with pytest.raises(ValueError, match="batch_size must be positive"):
        make_runner(AccountBalances(), event_store, batch_size=0)
    with pytest.raises(ValueError, match="max_attempts must be positive"):
        make_runner(AccountBalances(), event_store, max_attempts=0)


@pytest.mark.asyncio
async def test_catch_up_applies_everything_and_saves_cursor(event_store, cursor_store):
    await append_history(event_store)
    projection = AccountBalances()
    runner = make_runner(projection, event_store, cursor_store, batch_size=2)

    position = await runner.catch_up()

    assert position == 3
    assert runner.position == 3
    assert await cursor_store.load_cursor("AccountBalances") == 3
    assert projection.balances == {"acct-1": 150, "acct-2": 7}


@pytest.mark.asyncio
async def test_resumes_from_saved_cursor(event_store, cursor_store):
    await append_history(event_store)
    await cursor_store.save_cursor("FlakyProjection", 2)
    projection = FlakyProjection(failures=0)

    await make_runner(projection, event_store, cursor_store).catch_up()

    # Only acct-2's AccountOpened at position 3 was read
    assert projection.total == 0


@pytest.mark.asyncio
async def test_process_batch_reports_records_read(event_store):
    await append_history(event_store)
    runner = make_runner(AccountBalances(), event_store, batch_size=2)

    assert await runner.process_batch() == 2
    assert await runner.process_batch() == 1
    assert await runner.process_batch() == 0


@pytest.mark.asyncio
async def test_failures_are_retried_with_backoff(event_store, cursor_store):
    await append_history(event_store)
    projection = FlakyProjection(failures=2)
    runner = make_runner(projection, event_store, cursor_store, max_attempts=3)

    await runner.catch_up()

    assert projection.attempts == 3
    assert projection.total == 50
    assert runner.position == 3


@pytest.mark.asyncio
async def test_exhausted_retries_raise_and_keep_cursor(event_store, cursor_store, caplog):
    await append_history(event_store)
    projection = FlakyProjection(failures=10)
    runner = make_runner(projection, event_store, cursor_store, max_attempts=2)

    with caplog.at_level(logging.WARNING, logger="chronicle.projections.runner"):
        with pytest.raises(ProjectionApplyFailure) as exc_info:
            await runner.catch_up()

    assert exc_info.value.attempts == 2
    assert exc_info.value.record.global_position == 2
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert runner.position == 1
    assert await cursor_store.load_cursor("FlakyProjection") == 1
    assert any(r.levelno == logging.ERROR for r in caplog.records)


@pytest.mark.asyncio
async def test_run_follows_new_commits(event_store):
    projection = AccountBalances()
    runner = make_runner(projection, event_store, idle_timeout=0.05)
    task = asyncio.create_task(runner.run())
    try:
        await append_history(event_store)
        assert await runner.wait_for_position(3, timeout=1.0)
        assert projection.balances == {"acct-1": 150, "acct-2": 7}
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_wait_for_position_times_out_without_progress(event_store):
    runner = make_runner(AccountBalances(), event_store)

    assert await runner.wait_for_position(1, timeout=0.01) is False
    assert await runner.wait_for_position(0, timeout=0) is True


@pytest.mark.asyncio
async def test_foreign_correlation_ids_do_not_block_the_projection(event_store, cursor_store):
    await event_store.append(
        "acct-1",
        0,
        [NewEvent.from_model(AccountOpened(balance=100), {"correlation_id": "req-42"})],
    )
    projection = AccountBalances()
    runner = make_runner(projection, event_store, cursor_store, max_attempts=1)

    assert await runner.catch_up() == 1
    assert projection.balances == {"acct-1": 100}
    assert await cursor_store.load_cursor("AccountBalances") == 1


@pytest.mark.asyncio
async def test_records_without_global_position_are_rejected():
    class UnpositionedStore(InMemoryEventStore):
        async def get_events_from(self, global_position, limit=None):
            yield EventRecord(
                stream_id="acct-1",
                sequence_number=1,
                event_type="AccountOpened",
                payload=AccountOpened(balance=1).model_dump_json().encode(),
            )

    runner = make_runner(AccountBalances(), UnpositionedStore())

    with pytest.raises(ValueError, match="has no global position"):
        await runner.process_batch()
    assert runner.position == 0
