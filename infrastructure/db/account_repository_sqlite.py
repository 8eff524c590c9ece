from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, List, Sequence

from domain.errors import AccountNotFoundError, DuplicateAccountError, StorageError
from domain.models import Account
from domain.repositories import AccountRepository, LedgerTransaction
from domain.security import DEFAULT_PIN

logger = logging.getLogger(__name__)

LAST_ACCOUNT_ID_KEY = "last_account_id"


class SqliteLedgerTransaction(LedgerTransaction):
    """Ledger operations running on one SQLite connection inside BEGIN ... COMMIT."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, statement: str, params: Sequence[Any] = ()) -> int:
        """Run a parameterised write and return the number of affected rows."""

        return self._conn.execute(statement, params).rowcount

    def query(self, statement: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        return self._conn.execute(statement, params).fetchall()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Account:
        return Account(
            id=int(row[0]),
            account_number=row[1],
            pin=row[2],
            balance=int(row[3]),
        )

    def fetch(self, account_number: str) -> Account:
        rows = self.query(
            """
            SELECT id, account_number, pin, balance
            FROM account
            WHERE account_number = ?
            """,
            (account_number,),
        )
        if not rows:
            raise AccountNotFoundError(account_number)
        return self._to_domain(rows[0])

    def fetch_all(self) -> List[Account]:
        rows = self.query(
            "SELECT id, account_number, pin, balance FROM account ORDER BY id"
        )
        return [self._to_domain(row) for row in rows]

    def next_id(self) -> int:
        rows = self.query(
            """
            SELECT MAX(
                COALESCE((SELECT MAX(id) FROM account), 0),
                COALESCE((SELECT value FROM ledger_meta WHERE key = ?), 0)
            ) + 1
            """,
            (LAST_ACCOUNT_ID_KEY,),
        )
        return int(rows[0][0])

    def insert(self, account: Account) -> None:
        if self.query(
            "SELECT 1 FROM account WHERE account_number = ?",
            (account.account_number,),
        ):
            raise DuplicateAccountError(account.account_number)

        self.execute(
            """
            INSERT INTO account (id, account_number, pin, balance)
            VALUES (?, ?, ?, ?)
            """,
            (account.id, account.account_number, account.pin, account.balance),
        )
        # The high-water mark only moves forward.
        self.execute(
            """
            INSERT INTO ledger_meta (key, value)
            VALUES (?, ?)
            ON CONFLICT (key)
            DO UPDATE SET value = MAX(value, excluded.value)
            """,
            (LAST_ACCOUNT_ID_KEY, account.id),
        )

    def adjust_balance(self, account_number: str, delta: int) -> bool:
        updated = self.execute(
            """
            UPDATE account
            SET balance = balance + ?
            WHERE account_number = ? AND balance + ? >= 0
            """,
            (delta, account_number, delta),
        )
        return updated == 1

    def delete(self, account_number: str) -> bool:
        deleted = self.execute(
            "DELETE FROM account WHERE account_number = ?",
            (account_number,),
        )
        return deleted > 0


class SqliteAccountRepository(AccountRepository):
    """
    SQLite-backed implementation of `AccountRepository`.

    Owns the `account` table and the `ledger_meta` bookkeeping table and is
    self-initialising. Every connection runs in autocommit mode so that
    transactions are opened explicitly: mutating units use
    `BEGIN IMMEDIATE`, which takes the database's reserved lock up front and
    serialises writers across threads and processes alike. Lock waits are
    bounded by `timeout` seconds.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self.initialize()

    def _get_connection(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(
                self._db_path,
                timeout=self._timeout,
                isolation_level=None,
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open ledger at {self._db_path}: {exc}") from exc

    def initialize(self) -> None:
        """Create the ledger tables if they do not exist yet."""

        with self._transaction("BEGIN IMMEDIATE") as tx:
            tx.execute(
                f"""
                CREATE TABLE IF NOT EXISTS account (
                    id INTEGER PRIMARY KEY,
                    account_number TEXT NOT NULL,
                    pin TEXT DEFAULT '{DEFAULT_PIN}',
                    balance INTEGER DEFAULT 0 CHECK (balance >= 0)
                )
                """
            )
            tx.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS account_account_number_idx
                ON account (account_number)
                """
            )
            tx.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_meta (
                    key TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
                """
            )

        # journal_mode cannot change inside a transaction.
        conn = self._get_connection()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot configure ledger at {self._db_path}: {exc}") from exc
        finally:
            conn.close()

        logger.debug("Ledger initialised at %s", self._db_path)

    @contextmanager
    def _transaction(self, begin: str) -> Iterator[SqliteLedgerTransaction]:
        conn = self._get_connection()
        try:
            try:
                conn.execute(begin)
                yield SqliteLedgerTransaction(conn)
                conn.execute("COMMIT")
            except Exception:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as exc:
            logger.error("Ledger storage failure on %s: %s", self._db_path, exc)
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def atomic(self) -> ContextManager[SqliteLedgerTransaction]:
        return self._transaction("BEGIN IMMEDIATE")

    def fetch(self, account_number: str) -> Account:
        with self._transaction("BEGIN") as tx:
            return tx.fetch(account_number)

    def fetch_all(self) -> List[Account]:
        with self._transaction("BEGIN") as tx:
            return tx.fetch_all()

    def next_id(self) -> int:
        with self._transaction("BEGIN") as tx:
            return tx.next_id()
