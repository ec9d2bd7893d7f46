from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shuguridan.core.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """Engine kwargs for the configured backend.

    Postgres gets a bounded asyncpg pool tagged with the service name; the
    SQLite databases used in tests keep SQLAlchemy's defaults.
    """
    options: dict[str, Any] = {"pool_pre_ping": True}
    if make_url(settings.database_url).get_backend_name() == "sqlite":
        return options

    options.update(
        pool_size=max(1, settings.api_db_pool_size),
        max_overflow=max(0, settings.api_db_max_overflow),
        pool_timeout=30,
        pool_recycle=1800,
    )
    server_settings = {"application_name": settings.app_name}
    if settings.api_db_statement_timeout_ms > 0:
        server_settings["statement_timeout"] = str(settings.api_db_statement_timeout_ms)
    options["connect_args"] = {"server_settings": server_settings}
    return options


settings = get_settings()
engine = create_async_engine(settings.database_url, **engine_options(settings))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    # Used by request dependencies and by background upload jobs alike.
    async with SessionLocal() as session:
        yield session
