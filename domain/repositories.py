from __future__ import annotations

from typing import ContextManager, List, Protocol

from .models import Account


class LedgerTransaction(Protocol):
    """
    Account operations bound to a single open transaction.

    Everything done through one `LedgerTransaction` commits or rolls back
    together. Implementations must bind every caller-supplied value as a
    statement parameter.
    """

    def fetch(self, account_number: str) -> Account:
        """
        Return the account with exactly this account number.

        Raises `AccountNotFoundError` when there is none.
        """

        ...

    def fetch_all(self) -> List[Account]:
        """Return every account, ordered by id."""

        ...

    def next_id(self) -> int:
        """
        Return the identifier the next inserted account should get.

        This is one past the highest id ever assigned, so ids freed by a
        deletion are never handed out again.
        """

        ...

    def insert(self, account: Account) -> None:
        """
        Persist a new account and advance the id high-water mark.

        Raises `DuplicateAccountError` if the account number is taken.
        """

        ...

    def adjust_balance(self, account_number: str, delta: int) -> bool:
        """
        Apply `balance = balance + delta` inside the store.

        The update is refused when it would make the balance negative;
        returns False in that case (or when no row matched).
        """

        ...

    def delete(self, account_number: str) -> bool:
        """Remove the account row. Returns False if nothing was deleted."""

        ...


class AccountRepository(Protocol):
    """
    Abstraction over the durable account table.

    `atomic()` is the unit-of-work boundary used by every mutating ledger
    operation. The remaining methods are read conveniences that each run
    in their own short transaction.
    """

    def atomic(self) -> ContextManager[LedgerTransaction]:
        """
        Open a transaction that holds the store's write lock.

        Commits when the block exits normally and rolls back when it
        raises. Driver failures surface as `StorageError`.
        """

        ...

    def fetch(self, account_number: str) -> Account:
        ...

    def fetch_all(self) -> List[Account]:
        ...

    def next_id(self) -> int:
        ...
