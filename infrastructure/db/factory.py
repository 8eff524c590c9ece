from __future__ import annotations

from domain.repositories import AccountRepository
from infrastructure.config import LedgerConfig


def build_account_repository(config: LedgerConfig) -> AccountRepository:
    """Instantiate the account repository for the configured backend."""

    if config.db_backend == "postgres":
        # Imported lazily so SQLite deployments do not need the driver loaded.
        from infrastructure.db.account_repository_postgres import (
            PostgresAccountRepository,
        )

        return PostgresAccountRepository(config.postgres.to_params())

    from infrastructure.db.account_repository_sqlite import SqliteAccountRepository

    return SqliteAccountRepository(config.db_path, timeout=config.db_timeout)
