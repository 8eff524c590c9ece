"""Exception hierarchy for the account ledger."""

from __future__ import annotations


class BankError(Exception):
    """Base exception for all ledger errors."""


class StorageError(BankError):
    """Raised when the backing store is unavailable, locked or malformed."""


class ConfigurationError(BankError):
    """Raised when configuration is invalid or missing."""


class LedgerError(BankError):
    """
    Base class for benign, caller-correctable failures.

    Ledger operations return these inside their result objects instead of
    letting them escape.
    """


class AccountNotFoundError(LedgerError):
    """Raised when a referenced account number does not exist."""

    def __init__(self, account_number: str) -> None:
        super().__init__(f"Account `{account_number}` does not exist.")
        self.account_number = account_number


class WrongPinError(LedgerError):
    """Raised when the supplied PIN does not match the stored one."""

    def __init__(self) -> None:
        super().__init__("Wrong pin. Try again...")


class InsufficientFundsError(LedgerError):
    def __init__(self, balance: int, amount: int) -> None:
        super().__init__(
            f"Insufficient funds: balance is {balance}, requested {amount}."
        )
        self.balance = balance
        self.amount = amount


class InvalidAmountError(LedgerError):
    """Raised when an amount is not a non-negative integer in range."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid amount: {value!r}.")
        self.value = value


class SameAccountError(LedgerError):
    def __init__(self, account_number: str) -> None:
        super().__init__(
            f"Cannot transfer from account `{account_number}` to itself."
        )
        self.account_number = account_number


class DuplicateAccountError(LedgerError):
    """Raised when an account number is already taken."""

    def __init__(self, account_number: str) -> None:
        super().__init__(f"Account `{account_number}` already exists.")
        self.account_number = account_number
