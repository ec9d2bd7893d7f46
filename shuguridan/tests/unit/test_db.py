from __future__ import annotations

from shuguridan.core.config import Settings
from shuguridan.persistence.db import engine_options


def test_sqlite_keeps_default_pool() -> None:
    options = engine_options(Settings(database_url="sqlite+aiosqlite:///tmp/test.db"))
    assert options == {"pool_pre_ping": True}


def test_postgres_pool_is_bounded_and_tagged() -> None:
    options = engine_options(
        Settings(
            database_url="postgresql+asyncpg://user:pw@db/shuguridan",
            api_db_pool_size=0,
            api_db_statement_timeout_ms=1500,
        )
    )

    assert options["pool_size"] == 1
    assert options["pool_recycle"] == 1800
    assert options["connect_args"]["server_settings"] == {
        "application_name": "shuguridan",
        "statement_timeout": "1500",
    }
