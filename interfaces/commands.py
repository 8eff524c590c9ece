"""
Channel-agnostic text commands.

Chat adapters (Telegram, Discord) split an incoming message into a command
name and arguments and hand them to `dispatch`, which calls the ledger
operations and returns the reply text.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Tuple

from application.services import (
    delete_account,
    deposit,
    open_account,
    show_balance,
    transfer,
    withdraw,
)
from domain.errors import StorageError
from domain.repositories import AccountRepository
from interfaces.presenter import (
    format_balance,
    format_balance_change,
    format_created,
    format_deleted,
    format_transfer,
)

logger = logging.getLogger(__name__)

Handler = Callable[[List[str], AccountRepository], str]

# Replies to these reveal a PIN, so they are only served in private chats.
PRIVATE_COMMANDS = frozenset({"create"})

PRIVATE_ONLY_TEXT = (
    "For your security this command only works in a private chat. "
    "Message the bot directly and try again."
)

HELP_TEXT = (
    "create <initial balance>                   - open a new account\n"
    "balance <account>                          - show an account's balance\n"
    "deposit <account> <amount> <pin>           - deposit into an account\n"
    "withdraw <account> <amount> <pin>          - withdraw from an account\n"
    "transfer <from> <to> <amount> <pin>        - transfer between accounts\n"
    "delete <account> <pin>                     - close an account\n"
)


def _create(args: List[str], account_repo: AccountRepository) -> str:
    return format_created(open_account(args[0], account_repo))


def _balance(args: List[str], account_repo: AccountRepository) -> str:
    return format_balance(show_balance(args[0], account_repo))


def _deposit(args: List[str], account_repo: AccountRepository) -> str:
    account_number, amount, pin = args
    return format_balance_change(deposit(amount, pin, account_number, account_repo))


def _withdraw(args: List[str], account_repo: AccountRepository) -> str:
    account_number, amount, pin = args
    return format_balance_change(withdraw(amount, pin, account_number, account_repo))


def _transfer(args: List[str], account_repo: AccountRepository) -> str:
    origin, target, amount, pin = args
    return format_transfer(transfer(amount, pin, origin, target, account_repo))


def _delete(args: List[str], account_repo: AccountRepository) -> str:
    account_number, pin = args
    return format_deleted(delete_account(account_number, pin, account_repo))


# name -> (expected argument count, usage, handler)
COMMANDS: Dict[str, Tuple[int, str, Handler]] = {
    "create": (1, "create <initial balance>", _create),
    "balance": (1, "balance <account>", _balance),
    "deposit": (3, "deposit <account> <amount> <pin>", _deposit),
    "withdraw": (3, "withdraw <account> <amount> <pin>", _withdraw),
    "transfer": (4, "transfer <from> <to> <amount> <pin>", _transfer),
    "delete": (2, "delete <account> <pin>", _delete),
}


def split_command(text: str, prefix: str) -> Tuple[str, List[str]]:
    """
    Split a chat message like "/deposit 123 50 000000" into its parts.

    The command name is lower-cased and stripped of `prefix` and of any
    "@botname" suffix Telegram appends in group chats.
    """

    parts = text.split()
    if not parts:
        return "", []

    name = parts[0]
    if name.startswith(prefix):
        name = name[len(prefix):]
    name = name.split("@", 1)[0].lower()
    return name, parts[1:]


def dispatch(command: str, args: List[str], account_repo: AccountRepository) -> str:
    """Run a ledger command and return the reply text."""

    if command in ("help", "start"):
        return HELP_TEXT

    entry = COMMANDS.get(command)
    if entry is None:
        return f"Unknown command `{command}`.\n\n{HELP_TEXT}"

    arity, usage, handler = entry
    if len(args) != arity:
        return f"Usage: {usage}"

    try:
        return handler(args, account_repo)
    except StorageError:
        logger.exception("Storage failure while handling %s", command)
        return "The ledger is unavailable right now. Please try again later."
