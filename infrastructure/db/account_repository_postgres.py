from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, List, Sequence

import psycopg2
import psycopg2.errors

from domain.errors import AccountNotFoundError, DuplicateAccountError, StorageError
from domain.models import Account
from domain.repositories import AccountRepository, LedgerTransaction
from domain.security import DEFAULT_PIN

logger = logging.getLogger(__name__)

LAST_ACCOUNT_ID_KEY = "last_account_id"


class PostgresLedgerTransaction(LedgerTransaction):
    """
    Ledger operations bound to one psycopg2 cursor.

    Row reads take `FOR UPDATE` locks so that a read-check-write sequence
    cannot interleave with another transaction touching the same account.
    """

    def __init__(self, cur) -> None:
        self._cur = cur

    def execute(self, statement: str, params: Sequence[Any] = ()) -> int:
        self._cur.execute(statement, params)
        return self._cur.rowcount

    def query(self, statement: str, params: Sequence[Any] = ()) -> List[tuple]:
        self._cur.execute(statement, params)
        return self._cur.fetchall()

    @staticmethod
    def _to_domain(row: tuple) -> Account:
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
            WHERE account_number = %s
            FOR UPDATE
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
        # Blocks concurrent inserts (and other next_id callers) until commit.
        self.execute("LOCK TABLE account IN SHARE ROW EXCLUSIVE MODE")
        rows = self.query(
            """
            SELECT GREATEST(
                COALESCE((SELECT MAX(id) FROM account), 0),
                COALESCE((SELECT value FROM ledger_meta WHERE key = %s), 0)
            ) + 1
            """,
            (LAST_ACCOUNT_ID_KEY,),
        )
        return int(rows[0][0])

    def insert(self, account: Account) -> None:
        if self.query(
            "SELECT 1 FROM account WHERE account_number = %s",
            (account.account_number,),
        ):
            raise DuplicateAccountError(account.account_number)

        try:
            self.execute(
                """
                INSERT INTO account (id, account_number, pin, balance)
                VALUES (%s, %s, %s, %s)
                """,
                (account.id, account.account_number, account.pin, account.balance),
            )
        except psycopg2.errors.UniqueViolation as exc:
            # A concurrent insert won the race past the check above.
            raise DuplicateAccountError(account.account_number) from exc
        self.execute(
            """
            INSERT INTO ledger_meta (key, value)
            VALUES (%s, %s)
            ON CONFLICT (key)
            DO UPDATE SET value = GREATEST(ledger_meta.value, excluded.value)
            """,
            (LAST_ACCOUNT_ID_KEY, account.id),
        )

    def adjust_balance(self, account_number: str, delta: int) -> bool:
        updated = self.execute(
            """
            UPDATE account
            SET balance = balance + %s
            WHERE account_number = %s AND balance + %s >= 0
            """,
            (delta, account_number, delta),
        )
        return updated == 1

    def delete(self, account_number: str) -> bool:
        deleted = self.execute(
            "DELETE FROM account WHERE account_number = %s",
            (account_number,),
        )
        return deleted > 0


class PostgresAccountRepository(AccountRepository):
    """
    Postgres-backed implementation of `AccountRepository`.

    `db_params` is passed straight to `psycopg2.connect`. The repository is
    self-initialising and opens a fresh connection per unit of work.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _get_connection(self):
        try:
            return psycopg2.connect(**self._db_params)
        except psycopg2.Error as exc:
            raise StorageError(f"Cannot connect to ledger database: {exc}") from exc

    def _ensure_table(self) -> None:
        with self.atomic() as tx:
            tx.execute(
                f"""
                CREATE TABLE IF NOT EXISTS account (
                    id BIGINT PRIMARY KEY,
                    account_number TEXT NOT NULL UNIQUE,
                    pin TEXT DEFAULT '{DEFAULT_PIN}',
                    balance BIGINT DEFAULT 0 CHECK (balance >= 0)
                )
                """
            )
            tx.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_meta (
                    key TEXT PRIMARY KEY,
                    value BIGINT NOT NULL
                )
                """
            )

    @contextmanager
    def _transaction(self) -> Iterator[PostgresLedgerTransaction]:
        conn = self._get_connection()
        try:
            # psycopg2 opens the transaction implicitly; `with conn` commits
            # on success and rolls back on any exception.
            with conn:
                with conn.cursor() as cur:
                    yield PostgresLedgerTransaction(cur)
        except psycopg2.Error as exc:
            logger.error("Ledger storage failure: %s", exc)
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def atomic(self) -> ContextManager[PostgresLedgerTransaction]:
        return self._transaction()

    def fetch(self, account_number: str) -> Account:
        with self.atomic() as tx:
            return tx.fetch(account_number)

    def fetch_all(self) -> List[Account]:
        with self.atomic() as tx:
            return tx.fetch_all()

    def next_id(self) -> int:
        with self.atomic() as tx:
            rows = tx.query(
                """
                SELECT GREATEST(
                    COALESCE((SELECT MAX(id) FROM account), 0),
                    COALESCE((SELECT value FROM ledger_meta WHERE key = %s), 0)
                ) + 1
                """,
                (LAST_ACCOUNT_ID_KEY,),
            )
        return int(rows[0][0])
