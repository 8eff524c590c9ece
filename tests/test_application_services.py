import os
import tempfile
import threading
import unittest
from contextlib import contextmanager
from dataclasses import replace

from application.services import (
    create_account,
    delete_account,
    deposit,
    list_accounts,
    open_account,
    show_balance,
    transfer,
    withdraw,
)
from domain.account_numbers import is_valid_account_number
from domain.errors import (
    AccountNotFoundError,
    DuplicateAccountError,
    InsufficientFundsError,
    InvalidAmountError,
    SameAccountError,
    WrongPinError,
)
from domain.models import Account
from domain.repositories import AccountRepository, LedgerTransaction
from infrastructure.db.account_repository_sqlite import SqliteAccountRepository


class InMemoryLedgerTransaction(LedgerTransaction):
    def __init__(self, rows, meta):
        self.rows = rows
        self.meta = meta

    def fetch(self, account_number: str) -> Account:
        account = self.rows.get(account_number)
        if account is None:
            raise AccountNotFoundError(account_number)
        return replace(account)

    def fetch_all(self):
        return [replace(a) for a in sorted(self.rows.values(), key=lambda a: a.id)]

    def next_id(self) -> int:
        highest = max((a.id for a in self.rows.values()), default=0)
        return max(highest, self.meta["last_account_id"]) + 1

    def insert(self, account: Account) -> None:
        if account.account_number in self.rows:
            raise DuplicateAccountError(account.account_number)
        self.rows[account.account_number] = replace(account)
        self.meta["last_account_id"] = max(self.meta["last_account_id"], account.id)

    def adjust_balance(self, account_number: str, delta: int) -> bool:
        account = self.rows.get(account_number)
        if account is None or account.balance + delta < 0:
            return False
        account.balance += delta
        return True

    def delete(self, account_number: str) -> bool:
        return self.rows.pop(account_number, None) is not None


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.rows = {}
        self.meta = {"last_account_id": 0}
        self._lock = threading.Lock()

    @contextmanager
    def atomic(self):
        with self._lock:
            rows_snapshot = {k: replace(v) for k, v in self.rows.items()}
            meta_snapshot = dict(self.meta)
            try:
                yield InMemoryLedgerTransaction(self.rows, self.meta)
            except Exception:
                self.rows.clear()
                self.rows.update(rows_snapshot)
                self.meta.clear()
                self.meta.update(meta_snapshot)
                raise

    def fetch(self, account_number: str) -> Account:
        with self.atomic() as tx:
            return tx.fetch(account_number)

    def fetch_all(self):
        with self.atomic() as tx:
            return tx.fetch_all()

    def next_id(self) -> int:
        with self.atomic() as tx:
            return tx.next_id()


class LedgerScenarios:
    """Behaviour every `AccountRepository` backend must show through the services."""

    def make_repo(self) -> AccountRepository:
        raise NotImplementedError

    def setUp(self) -> None:
        self.repo = self.make_repo()

    def _create(self, account_number: str, balance: int, pin=None) -> Account:
        if pin is None:
            result = create_account(account_number, balance, self.repo)
        else:
            result = create_account(
                account_number, balance, self.repo, pin_generator=lambda: pin
            )
        self.assertTrue(result.success, result.error_message)
        return result.account

    def _balance(self, account_number: str) -> int:
        return self.repo.fetch(account_number).balance

    def test_created_account_is_fetchable_with_pin(self):
        created = self._create("4000000001", 100)

        account = self.repo.fetch("4000000001")
        self.assertEqual(account.account_number, "4000000001")
        self.assertEqual(account.balance, 100)
        self.assertEqual(len(account.pin), 6)
        self.assertTrue(account.pin.isdigit())
        # The caller learns the PIN from the create result.
        self.assertEqual(created.pin, account.pin)

    def test_create_uses_pin_generator(self):
        result = create_account("4000000001", 0, self.repo, pin_generator=lambda: "123456")
        self.assertEqual(result.account.pin, "123456")
        self.assertEqual(self.repo.fetch("4000000001").pin, "123456")

    def test_create_rejects_invalid_initial_balance(self):
        result = create_account("4000000001", "-10", self.repo)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, InvalidAmountError)
        self.assertEqual(self.repo.fetch_all(), [])

    def test_create_rejects_duplicate_account_number(self):
        self._create("4000000001", 10)
        result = create_account("4000000001", 99, self.repo)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, DuplicateAccountError)
        self.assertEqual(self._balance("4000000001"), 10)

    def test_open_account_generates_valid_number(self):
        result = open_account(25, self.repo)
        self.assertTrue(result.success)
        self.assertTrue(is_valid_account_number(result.account.account_number))
        self.assertEqual(self._balance(result.account.account_number), 25)

    def test_first_id_is_one_and_ids_increase(self):
        self.assertEqual(self.repo.next_id(), 1)
        ids = [self._create(f"400000000{i}", 0).id for i in range(1, 4)]
        self.assertEqual(ids, [1, 2, 3])

    def test_ids_not_reused_after_deletion(self):
        self._create("4000000001", 0)
        last = self._create("4000000002", 0)

        result = delete_account("4000000002", last.pin, self.repo)
        self.assertTrue(result.success)

        newest = self._create("4000000003", 0)
        self.assertEqual(newest.id, 3)

    def test_show_balance(self):
        self._create("4000000001", 42)
        result = show_balance("4000000001", self.repo)
        self.assertTrue(result.success)
        self.assertEqual(result.balance, 42)

    def test_show_balance_not_found(self):
        result = show_balance("missing", self.repo)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, AccountNotFoundError)
        self.assertIsNone(result.balance)

    def test_deposit_success(self):
        account = self._create("4000000001", 0)
        result = deposit("50", account.pin, "4000000001", self.repo)
        self.assertTrue(result.success)
        self.assertEqual(result.account.balance, 50)
        self.assertEqual(self._balance("4000000001"), 50)

    def test_deposit_wrong_pin(self):
        self._create("4000000001", 5, pin="111111")
        result = deposit(50, "111112", "4000000001", self.repo)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, WrongPinError)
        self.assertEqual(self._balance("4000000001"), 5)

    def test_deposit_invalid_amounts(self):
        account = self._create("4000000001", 5)
        for amount in ("abc", "-5", "1.5", "", -1, True):
            result = deposit(amount, account.pin, "4000000001", self.repo)
            self.assertFalse(result.success)
            self.assertIsInstance(result.error, InvalidAmountError)
        self.assertEqual(self._balance("4000000001"), 5)

    def test_deposit_unknown_account(self):
        result = deposit(5, "123456", "missing", self.repo)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, AccountNotFoundError)

    def test_withdraw_success(self):
        account = self._create("4000000001", 30)
        result = withdraw(30, account.pin, "4000000001", self.repo)
        self.assertTrue(result.success)
        self.assertEqual(self._balance("4000000001"), 0)

    def test_withdraw_insufficient_funds(self):
        account = self._create("4000000001", 10)
        result = withdraw("20", account.pin, "4000000001", self.repo)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, InsufficientFundsError)
        self.assertEqual(result.error.balance, 10)
        self.assertEqual(result.error.amount, 20)
        self.assertEqual(self._balance("4000000001"), 10)

    def test_withdraw_wrong_pin(self):
        self._create("4000000001", 10)
        result = withdraw(5, "not-a-pin", "4000000001", self.repo)
        self.assertIsInstance(result.error, WrongPinError)
        self.assertEqual(self._balance("4000000001"), 10)

    def test_transfer_full_balance(self):
        origin = self._create("4000000001", 10000)
        self._create("4000000002", 0)

        result = transfer("10000", origin.pin, "4000000001", "4000000002", self.repo)

        self.assertTrue(result.success)
        refreshed_origin, refreshed_target = result.accounts
        self.assertEqual(refreshed_origin.balance, 0)
        self.assertEqual(refreshed_target.balance, 10000)
        self.assertEqual(self._balance("4000000001"), 0)
        self.assertEqual(self._balance("4000000002"), 10000)

    def test_transfer_preserves_total(self):
        origin = self._create("4000000001", 700)
        self._create("4000000002", 300)

        transfer(250, origin.pin, "4000000001", "4000000002", self.repo)

        self.assertEqual(self._balance("4000000001"), 450)
        self.assertEqual(self._balance("4000000002"), 550)

    def test_transfer_to_same_account_rejected(self):
        origin = self._create("4000000001", 100)
        for amount, pin in ((10, origin.pin), ("junk", origin.pin), (10, "bad")):
            result = transfer(amount, pin, "4000000001", "4000000001", self.repo)
            self.assertFalse(result.success)
            self.assertIsInstance(result.error, SameAccountError)
        self.assertEqual(self._balance("4000000001"), 100)

    def test_transfer_insufficient_funds_moves_nothing(self):
        origin = self._create("4000000001", 10)
        self._create("4000000002", 5)

        result = transfer(11, origin.pin, "4000000001", "4000000002", self.repo)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, InsufficientFundsError)
        self.assertEqual(self._balance("4000000001"), 10)
        self.assertEqual(self._balance("4000000002"), 5)

    def test_transfer_checks_origin_pin_only(self):
        self._create("4000000001", 10, pin="111111")
        self._create("4000000002", 5, pin="222222")

        result = transfer(5, "222222", "4000000001", "4000000002", self.repo)

        self.assertIsInstance(result.error, WrongPinError)
        self.assertEqual(self._balance("4000000001"), 10)
        self.assertEqual(self._balance("4000000002"), 5)

    def test_transfer_unknown_target(self):
        origin = self._create("4000000001", 10)
        result = transfer(5, origin.pin, "4000000001", "missing", self.repo)
        self.assertIsInstance(result.error, AccountNotFoundError)
        self.assertEqual(self._balance("4000000001"), 10)

    def test_transfer_invalid_amount(self):
        origin = self._create("4000000001", 10)
        self._create("4000000002", 0)
        result = transfer("ten", origin.pin, "4000000001", "4000000002", self.repo)
        self.assertIsInstance(result.error, InvalidAmountError)
        self.assertEqual(self._balance("4000000001"), 10)

    def test_delete_requires_pin(self):
        self._create("4000000001", 10)
        result = delete_account("4000000001", "bad", self.repo)
        self.assertIsInstance(result.error, WrongPinError)
        self.assertEqual(self._balance("4000000001"), 10)

    def test_delete_removes_account(self):
        account = self._create("4000000001", 10)
        result = delete_account("4000000001", account.pin, self.repo)
        self.assertTrue(result.success)
        self.assertEqual(result.account.account_number, "4000000001")
        with self.assertRaises(AccountNotFoundError):
            self.repo.fetch("4000000001")
        self.assertIsInstance(
            deposit(1, account.pin, "4000000001", self.repo).error,
            AccountNotFoundError,
        )

    def test_list_accounts_ordered_by_id(self):
        self._create("4000000002", 1)
        self._create("4000000001", 2)
        numbers = [a.account_number for a in list_accounts(self.repo)]
        self.assertEqual(numbers, ["4000000002", "4000000001"])


class InMemoryLedgerServicesTests(LedgerScenarios, unittest.TestCase):
    def make_repo(self) -> AccountRepository:
        return InMemoryAccountRepository()


class SqliteLedgerServicesTests(LedgerScenarios, unittest.TestCase):
    def make_repo(self) -> AccountRepository:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        return SqliteAccountRepository(os.path.join(tmp.name, "bank.s3db"))


if __name__ == "__main__":
    unittest.main()
