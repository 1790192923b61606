from chronicle import Aggregate, DomainRuleViolation, applies_event, handles_command

from .commands import CheckBalance, DepositMoney, OpenAccount, WithdrawMoney
from .events import AccountOpened, MoneyDeposited, MoneyWithdrawn


class BankAccount(Aggregate):
    opened: bool = False
    balance: int = 0

    @handles_command
    def open(self, command: OpenAccount) -> None:
        if self.opened:
            raise DomainRuleViolation("Account is already open")
        if command.initial_balance < 0:
            raise DomainRuleViolation("Initial balance cannot be negative")
        self.emit(AccountOpened(balance=command.initial_balance))

    @handles_command
    def deposit(self, command: DepositMoney) -> None:
        if not self.opened:
            raise DomainRuleViolation("Account is not open")
        if command.amount <= 0:
            raise DomainRuleViolation("Amount must be positive")
        self.emit(MoneyDeposited(amount=command.amount))

    @handles_command
    def withdraw(self, command: WithdrawMoney) -> None:
        if command.amount > self.balance:
            raise DomainRuleViolation("Insufficient funds")
        self.emit(MoneyWithdrawn(amount=command.amount))

    @handles_command
    def check_balance(self, command: CheckBalance) -> None:
        if self.balance < command.minimum:
            raise DomainRuleViolation("Balance below minimum")

    @applies_event
    def apply_opened(self, event: AccountOpened) -> None:
        self.opened = True
        self.balance = event.balance

    @applies_event
    def apply_deposited(self, event: MoneyDeposited) -> None:
        self.balance += event.amount

    @applies_event
    def apply_withdrawn(self, event: MoneyWithdrawn) -> None:
        self.balance -= event.amount
