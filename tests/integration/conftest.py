"""Integration test fixtures: real SQLite database and cache stores, faked externals."""

from __future__ import annotations

import logging
import socket
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from market_intel_core.config.settings import Settings
from market_intel_infra.db.engine import create_engine
from market_intel_infra.db.session import create_session_factory, init_db

# ---------------------------------------------------------------------------
# Service health checks
# ---------------------------------------------------------------------------


def _tcp_reachable(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check if a TCP service is reachable."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


_redis_up = _tcp_reachable("localhost", 6379)

require_redis = pytest.mark.skipif(
    not _redis_up,
    reason="Redis not reachable on localhost:6379",
)


# ---------------------------------------------------------------------------
# Settings and database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def real_settings(tmp_path: Path) -> Settings:
    """Real Settings on a throwaway SQLite file."""
    from tests.mocks.mock_settings import make_real_settings

    return make_real_settings(tmp_path)


@pytest_asyncio.fixture
async def db_engine(real_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with all tables created."""
    engine = create_engine(real_settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(db_engine)


# ---------------------------------------------------------------------------
# Redis fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[object, None]:
    """Function-scoped Redis client on test DB 1, flushed before and after each test."""
    if not _redis_up:
        pytest.skip("Redis not available")

    from redis.asyncio import Redis

    client = Redis.from_url("redis://localhost:6379/1")
    await client.flushdb()
    yield client
    await client.flushdb()
    await client.aclose()


# ---------------------------------------------------------------------------
# Logging cleanup
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Save and restore root logger handlers.

    CLI tests call configure_logging() which replaces root logger handlers;
    stale handlers would otherwise write to closed pytest capture streams.
    """
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.level = original_level
