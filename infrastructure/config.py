"""Configuration for the ledger processes."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from domain.errors import ConfigurationError

BACKENDS = ("sqlite", "postgres")


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "bank"
    user: str = "postgres"
    password: str = "postgres"

    def to_params(self) -> dict[str, Any]:
        """Keyword arguments for `psycopg2.connect`."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
        }


@dataclass
class LedgerConfig:
    db_backend: str = "sqlite"
    db_path: str = "bank.s3db"
    db_timeout: float = 5.0
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    log_level: str = "INFO"
    log_format: str = "standard"
    telegram_token: Optional[str] = None
    discord_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """
        Build a config from environment variables.

        Entry points call `load_dotenv()` first so a local `.env` file is
        honoured.
        """

        backend = os.getenv("DB_BACKEND", "sqlite").lower()
        if backend not in BACKENDS:
            raise ConfigurationError(
                f"DB_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}"
            )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=_parse_number("POSTGRES_PORT", "5432", int),
            database=os.getenv("POSTGRES_DB", "bank"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        return cls(
            db_backend=backend,
            db_path=os.getenv("DB_PATH", "bank.s3db"),
            db_timeout=_parse_number("DB_TIMEOUT", "5", float),
            postgres=postgres,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
            telegram_token=os.getenv("TELEGRAM_TOKEN") or None,
            discord_token=os.getenv("DISCORD_TOKEN") or None,
        )


def _parse_number(name: str, default: str, kind):
    raw = os.getenv(name, default)
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
