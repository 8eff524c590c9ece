from __future__ import annotations

from application.services import BalanceResult, CreateAccountResult, OperationResult


def _balance_line(account_number: str, balance: int) -> str:
    return f"The account number `{account_number}` now has a balance of `{balance}`."


def format_created(result: CreateAccountResult) -> str:
    if not result.success:
        return result.error_message or "Could not create the account."

    account = result.account
    return (
        f"Created account `{account.account_number}` "
        f"with a balance of `{account.balance}`.\n"
        f"Your PIN is `{account.pin}`. Write it down: it is shown only once "
        "and cannot be recovered."
    )


def format_balance(result: BalanceResult) -> str:
    if not result.success:
        return result.error_message or "Could not read the balance."
    return _balance_line(result.account_number, result.balance)


def format_balance_change(result: OperationResult) -> str:
    """Render the outcome of a deposit or withdrawal."""

    if not result.success:
        return result.error_message or "Operation failed."
    return _balance_line(result.account.account_number, result.account.balance)


def format_transfer(result: OperationResult) -> str:
    if not result.success:
        return result.error_message or "Transfer failed."

    origin, target = result.accounts
    return "\n".join(
        [
            _balance_line(origin.account_number, origin.balance),
            _balance_line(target.account_number, target.balance),
        ]
    )


def format_deleted(result: OperationResult) -> str:
    if not result.success:
        return result.error_message or "Could not delete the account."
    return f"DELETED ACCOUNT: {result.account.account_number}"
