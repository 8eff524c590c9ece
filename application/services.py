from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from domain.account_numbers import generate_account_number
from domain.amounts import MAX_AMOUNT, parse_amount
from domain.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    LedgerError,
    SameAccountError,
)
from domain.models import Account
from domain.repositories import AccountRepository
from domain.security import generate_pin, require_pin

logger = logging.getLogger(__name__)

Amount = Union[int, str]


@dataclass
class OperationResult:
    """
    Result of a mutating ledger operation.

    On success `accounts` holds the refreshed state of every account the
    operation touched, in argument order. On failure `error` holds the
    typed reason and nothing was changed.
    """

    success: bool
    error: Optional[LedgerError] = None
    accounts: List[Account] = field(default_factory=list)

    @property
    def account(self) -> Optional[Account]:
        return self.accounts[0] if self.accounts else None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error else None


@dataclass
class CreateAccountResult:
    """
    Result of opening an account.

    `account` carries the freshly generated PIN. This is the only time the
    PIN is handed out, so callers must pass it on to the account holder.
    """

    success: bool
    error: Optional[LedgerError] = None
    account: Optional[Account] = None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error else None


@dataclass
class BalanceResult:
    success: bool
    account_number: str
    balance: Optional[int] = None
    error: Optional[LedgerError] = None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error else None


def create_account(
    account_number: str,
    initial_balance: Amount,
    account_repo: AccountRepository,
    pin_generator: Callable[[], str] = generate_pin,
) -> CreateAccountResult:
    """
    Open a new account under `account_number`.

    The next id is computed and the row inserted within one transaction,
    so concurrent creations cannot hand out the same id.
    """

    try:
        balance = parse_amount(initial_balance)
        pin = pin_generator()
        with account_repo.atomic() as tx:
            account = Account(
                id=tx.next_id(),
                account_number=account_number,
                pin=pin,
                balance=balance,
            )
            tx.insert(account)
    except LedgerError as exc:
        logger.info("Account creation for %s refused: %s", account_number, exc)
        return CreateAccountResult(success=False, error=exc)

    logger.info("Created account %s with id %d", account.account_number, account.id)
    return CreateAccountResult(success=True, account=account)


def open_account(
    initial_balance: Amount,
    account_repo: AccountRepository,
    number_generator: Callable[[], str] = generate_account_number,
    pin_generator: Callable[[], str] = generate_pin,
) -> CreateAccountResult:
    """Open an account under a freshly generated account number."""

    return create_account(
        number_generator(),
        initial_balance,
        account_repo,
        pin_generator=pin_generator,
    )


def show_balance(account_number: str, account_repo: AccountRepository) -> BalanceResult:
    try:
        account = account_repo.fetch(account_number)
    except AccountNotFoundError as exc:
        return BalanceResult(success=False, account_number=account_number, error=exc)

    return BalanceResult(
        success=True,
        account_number=account.account_number,
        balance=account.balance,
    )


def list_accounts(account_repo: AccountRepository) -> List[Account]:
    """Return every account ordered by id."""

    return account_repo.fetch_all()


def deposit(
    amount: Amount,
    pin: str,
    account_number: str,
    account_repo: AccountRepository,
) -> OperationResult:
    """Credit `amount` to the account once its PIN has been verified."""

    try:
        value = parse_amount(amount)
        with account_repo.atomic() as tx:
            account = tx.fetch(account_number)
            require_pin(account, pin)
            if account.balance + value > MAX_AMOUNT:
                raise InvalidAmountError(amount)
            tx.adjust_balance(account.account_number, value)
            updated = tx.fetch(account.account_number)
    except LedgerError as exc:
        logger.info("Deposit to %s refused: %s", account_number, exc)
        return OperationResult(success=False, error=exc)

    logger.info("Deposited %d to %s", value, account_number)
    return OperationResult(success=True, accounts=[updated])


def withdraw(
    amount: Amount,
    pin: str,
    account_number: str,
    account_repo: AccountRepository,
) -> OperationResult:
    """Debit `amount` from the account if the PIN matches and funds allow."""

    try:
        value = parse_amount(amount)
        with account_repo.atomic() as tx:
            account = tx.fetch(account_number)
            require_pin(account, pin)
            if not tx.adjust_balance(account.account_number, -value):
                raise InsufficientFundsError(account.balance, value)
            updated = tx.fetch(account.account_number)
    except LedgerError as exc:
        logger.info("Withdrawal from %s refused: %s", account_number, exc)
        return OperationResult(success=False, error=exc)

    logger.info("Withdrew %d from %s", value, account_number)
    return OperationResult(success=True, accounts=[updated])


def transfer(
    amount: Amount,
    pin: str,
    origin_account_number: str,
    target_account_number: str,
    account_repo: AccountRepository,
) -> OperationResult:
    """
    Move `amount` from the origin account to the target account.

    Only the origin's PIN is checked. Both legs are applied in one
    transaction: if either fails, neither is kept. On success the result
    holds the refreshed origin and target accounts, in that order.
    """

    try:
        if origin_account_number == target_account_number:
            raise SameAccountError(origin_account_number)

        value = parse_amount(amount)
        with account_repo.atomic() as tx:
            # Rows are locked in account-number order so that opposite
            # transfers between the same pair cannot deadlock.
            locked = {
                number: tx.fetch(number)
                for number in sorted((origin_account_number, target_account_number))
            }
            origin = locked[origin_account_number]
            target = locked[target_account_number]
            require_pin(origin, pin)

            if not tx.adjust_balance(origin.account_number, -value):
                raise InsufficientFundsError(origin.balance, value)
            if target.balance + value > MAX_AMOUNT:
                raise InvalidAmountError(amount)
            if not tx.adjust_balance(target.account_number, value):
                raise AccountNotFoundError(target.account_number)

            origin = tx.fetch(origin.account_number)
            target = tx.fetch(target.account_number)
    except LedgerError as exc:
        logger.info(
            "Transfer from %s to %s refused: %s",
            origin_account_number,
            target_account_number,
            exc,
        )
        return OperationResult(success=False, error=exc)

    logger.info(
        "Transferred %d from %s to %s",
        value,
        origin_account_number,
        target_account_number,
    )
    return OperationResult(success=True, accounts=[origin, target])


def delete_account(
    account_number: str,
    pin: str,
    account_repo: AccountRepository,
) -> OperationResult:
    """
    Permanently remove an account after verifying its PIN.

    The result carries the account as it was just before removal. Its id
    is never handed out again.
    """

    try:
        with account_repo.atomic() as tx:
            account = tx.fetch(account_number)
            require_pin(account, pin)
            if not tx.delete(account.account_number):
                raise AccountNotFoundError(account_number)
    except LedgerError as exc:
        logger.info("Deletion of %s refused: %s", account_number, exc)
        return OperationResult(success=False, error=exc)

    logger.info("Deleted account %s", account_number)
    return OperationResult(success=True, accounts=[account])
