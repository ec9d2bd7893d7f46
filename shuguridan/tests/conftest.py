from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Point the engine at a throwaway SQLite file before any shuguridan module builds it.
_TEST_DB = Path(tempfile.gettempdir()) / f"shuguridan-test-{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB}"
os.environ["EMBEDDING_PROVIDER"] = "none"
os.environ["LLM_PROVIDER"] = "auto"
for _key in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "JUDGE0_API_KEY", "RATE_LIMIT_BACKEND"):
    os.environ.pop(_key, None)

import pytest

from shuguridan.apps.api.deps import reset_provider_cache
from shuguridan.apps.api.rate_limit import reset_rate_limiter_state
from shuguridan.core.config import get_settings
from shuguridan.domain.models import Base
from shuguridan.persistence.db import engine
from shuguridan.services.upload.jobs import reset_job_manager


@pytest.fixture(autouse=True)
async def database() -> None:
    # Fresh schema per test keeps integration tests independent of ordering.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_process_state() -> None:
    # Rate-limit counters, upload jobs, providers and cached settings are per process.
    get_settings.cache_clear()
    reset_rate_limiter_state()
    reset_job_manager()
    reset_provider_cache()
    yield
    get_settings.cache_clear()
    reset_rate_limiter_state()
    reset_job_manager()
    reset_provider_cache()
