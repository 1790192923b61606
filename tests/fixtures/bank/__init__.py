"""A small bank domain shared by the test suites."""

from .aggregates import BankAccount
from .commands import CheckBalance, DepositMoney, OpenAccount, WithdrawMoney
from .events import AccountOpened, MoneyDeposited, MoneyWithdrawn
from .projections import AccountBalances, AccountDirectory, GetBalance, ListAccounts

__all__ = [
    "AccountBalances",
    "AccountDirectory",
    "AccountOpened",
    "BankAccount",
    "CheckBalance",
    "DepositMoney",
    "GetBalance",
    "ListAccounts",
    "MoneyDeposited",
    "MoneyWithdrawn",
    "OpenAccount",
    "WithdrawMoney",
]
