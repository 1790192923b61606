import pytest

from chronicle import DomainRuleViolation
from chronicle.testing import AggregateScenario
from tests.fixtures.bank import (
    AccountOpened,
    BankAccount,
    CheckBalance,
    DepositMoney,
    MoneyDeposited,
    MoneyWithdrawn,
    OpenAccount,
    WithdrawMoney,
)


@pytest.mark.asyncio
async def test_open_account():
    async with AggregateScenario(BankAccount, "acct-1") as scenario:
        scenario.given_no_events()
        scenario.when(OpenAccount(stream_id="acct-1", initial_balance=100))
        scenario.should_emit(AccountOpened(balance=100))
        scenario.should_have_state(lambda a: a.opened and a.version == 1)


@pytest.mark.asyncio
async def test_commands_decide_against_previous_decisions():
    async with AggregateScenario(BankAccount, "acct-1") as scenario:
        scenario.given(AccountOpened(balance=100))
        scenario.when(
            DepositMoney(stream_id="acct-1", amount=50),
            WithdrawMoney(stream_id="acct-1", amount=120),
        )
        scenario.should_emit(MoneyDeposited(amount=50), MoneyWithdrawn)
        scenario.should_have_state(lambda a: a.balance == 30 and a.version == 3)


@pytest.mark.asyncio
async def test_rejected_command():
    async with AggregateScenario(BankAccount, "acct-1") as scenario:
        scenario.given(AccountOpened(balance=10))
        scenario.when(WithdrawMoney(stream_id="acct-1", amount=20))
        scenario.should_raise(DomainRuleViolation)
        scenario.should_emit_nothing()
        scenario.should_have_state(lambda a: a.balance == 10)


@pytest.mark.asyncio
async def test_command_without_events():
    async with AggregateScenario(BankAccount, "acct-1") as scenario:
        scenario.given(AccountOpened(balance=10))
        scenario.when(CheckBalance(stream_id="acct-1", minimum=5))
        scenario.should_emit_nothing()


@pytest.mark.asyncio
async def test_unexpected_errors_are_reraised():
    with pytest.raises(DomainRuleViolation, match="Account is not open"):
        async with AggregateScenario(BankAccount, "acct-1") as scenario:
            scenario.when(DepositMoney(stream_id="acct-1", amount=5))


@pytest.mark.asyncio
async def test_unmet_expectation_fails():
    with pytest.raises(AssertionError, match="MoneyWithdrawn"):
        async with AggregateScenario(BankAccount, "acct-1") as scenario:
            scenario.given(AccountOpened(balance=10))
            scenario.when(DepositMoney(stream_id="acct-1", amount=5))
            scenario.should_emit(MoneyWithdrawn)
