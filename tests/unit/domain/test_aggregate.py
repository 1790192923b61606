import pytest

from chronicle.domain import DomainRuleViolation, EventRecord, UnknownEventType
from chronicle.testing.core import records_for
from tests.fixtures.bank import (
    AccountOpened,
    BankAccount,
    CheckBalance,
    DepositMoney,
    MoneyDeposited,
    MoneyWithdrawn,
    WithdrawMoney,
)


def test_event_types_dispatch_table():
    assert BankAccount.event_types() == {
        "AccountOpened": AccountOpened,
        "MoneyDeposited": MoneyDeposited,
        "MoneyWithdrawn": MoneyWithdrawn,
    }


def test_replay_folds_records_in_order():
    records = records_for("acct-1", [AccountOpened(balance=100), MoneyDeposited(amount=50)])

    account = BankAccount(stream_id="acct-1").replay(records)

    assert account.balance == 150
    assert account.version == 2
    assert account.last_event_time == records[-1].occurred_at


def test_replay_is_deterministic_and_leaves_initial_state_untouched():
    records = records_for(
        "acct-1",
        [AccountOpened(balance=10), MoneyDeposited(amount=5), MoneyWithdrawn(amount=3)],
    )
    initial = BankAccount(stream_id="acct-1")

    first = initial.replay(records)
    second = initial.replay(records)

    assert first == second
    assert initial.balance == 0
    assert initial.version == 0


def test_evolve_applies_a_single_record():
    opened, deposited = records_for("acct-1", [AccountOpened(balance=1), MoneyDeposited(amount=2)])

    account = BankAccount(stream_id="acct-1").evolve(opened).evolve(deposited)

    assert account.balance == 3
    assert account.version == 2


def test_replay_rejects_unknown_event_type():
    record = EventRecord(stream_id="acct-1", sequence_number=1, event_type="AccountClosed", payload=b"{}")

    with pytest.raises(UnknownEventType) as exc_info:
        BankAccount(stream_id="acct-1").replay([record])

    assert exc_info.value.event_type == "AccountClosed"
    assert exc_info.value.owner == "BankAccount"


def test_replay_rejects_gaps():
    records = records_for("acct-1", [MoneyDeposited(amount=1)], first_sequence=2)

    with pytest.raises(ValueError, match="does not follow version 0"):
        BankAccount(stream_id="acct-1").replay(records)


def test_decide_returns_events_without_mutating_aggregate():
    account = BankAccount(stream_id="acct-1").replay(records_for("acct-1", [AccountOpened(balance=10)]))

    new_events = account.decide(DepositMoney(stream_id="acct-1", amount=5))

    assert [event.event_type for event in new_events] == ["MoneyDeposited"]
    assert MoneyDeposited.model_validate_json(new_events[0].payload) == MoneyDeposited(amount=5)
    assert account.balance == 10
    assert account.uncommitted_events == []


def test_subclasses_inherit_handlers():
    class SavingsAccount(BankAccount):
        pass

    account = SavingsAccount(stream_id="acct-1").replay(records_for("acct-1", [AccountOpened(balance=0)]))

    new_events = account.decide(DepositMoney(stream_id="acct-1", amount=1))

    assert len(new_events) == 1


def test_decide_raises_domain_rule_violation():
    account = BankAccount(stream_id="acct-1").replay(records_for("acct-1", [AccountOpened(balance=10)]))

    with pytest.raises(DomainRuleViolation, match="Insufficient funds"):
        account.decide(WithdrawMoney(stream_id="acct-1", amount=11))


def test_decide_may_produce_no_events():
    account = BankAccount(stream_id="acct-1").replay(records_for("acct-1", [AccountOpened(balance=10)]))

    assert account.decide(CheckBalance(stream_id="acct-1", minimum=5)) == []


def test_uncommitted_events_are_not_serialized():
    account = BankAccount(stream_id="acct-1")

    assert "uncommitted_events" not in account.model_dump()
