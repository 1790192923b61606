import asyncio

import pytest

from chronicle.domain import NewEvent
from chronicle.store import EventSubscription, InMemoryEventStore
from tests.fixtures.bank import AccountOpened, MoneyDeposited


def deposited(amount: int) -> NewEvent:
    return NewEvent.from_model(MoneyDeposited(amount=amount))


@pytest.mark.asyncio
async def test_subscription_yields_records_in_global_order(event_store: InMemoryEventStore):
    await event_store.append("acct-1", 0, [NewEvent.from_model(AccountOpened(balance=1))])
    await event_store.append("acct-2", 0, [NewEvent.from_model(AccountOpened(balance=2))])
    subscription = event_store.subscribe(batch_size=1)

    first = await subscription.next()
    second = await subscription.next()

    assert (first.stream_id, first.global_position) == ("acct-1", 1)
    assert (second.stream_id, second.global_position) == ("acct-2", 2)


@pytest.mark.asyncio
async def test_subscription_starts_at_given_position(event_store: InMemoryEventStore):
    await event_store.append("acct-1", 0, [deposited(1), deposited(2), deposited(3)])
    subscription = event_store.subscribe(from_global_position=3)

    record = await subscription.next()

    assert record.global_position == 3
    assert await subscription.depth() == 0


@pytest.mark.asyncio
async def test_subscription_waits_for_new_commits(event_store: InMemoryEventStore):
    subscription = event_store.subscribe()
    pending = asyncio.create_task(subscription.next())
    await asyncio.sleep(0)
    assert not pending.done()

    await event_store.append("acct-1", 0, [deposited(1)])

    record = await asyncio.wait_for(pending, timeout=1.0)
    assert record.global_position == 1


@pytest.mark.asyncio
async def test_depth_counts_undelivered_records(event_store: InMemoryEventStore):
    await event_store.append("acct-1", 0, [deposited(1), deposited(2)])
    subscription = event_store.subscribe()

    assert await subscription.depth() == 2
    await subscription.next()
    assert await subscription.depth() == 1


@pytest.mark.asyncio
async def test_closed_subscription_stops_iteration(event_store: InMemoryEventStore):
    await event_store.append("acct-1", 0, [deposited(1), deposited(2)])
    subscription = event_store.subscribe()

    seen = []
    async for record in subscription:
        seen.append(record.global_position)
        if len(seen) == 2:
            subscription.close()

    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_close_drops_buffered_records(event_store: InMemoryEventStore):
    await event_store.append("acct-1", 0, [deposited(1), deposited(2), deposited(3)])
    subscription = event_store.subscribe()

    first = await subscription.next()
    subscription.close()

    assert first.global_position == 1
    with pytest.raises(StopAsyncIteration):
        await subscription.next()
    assert [record async for record in subscription] == []


def test_batch_size_must_be_positive(event_store: InMemoryEventStore):
    with pytest.raises(ValueError, match="batch_size must be positive"):
        EventSubscription(event_store, batch_size=0)
