"""Async database engine factory."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from market_intel_core.config.settings import Settings

logger = structlog.get_logger()


def _sqlite_pragmas(busy_timeout_ms: int) -> list[str]:
    """Statements run on every new SQLite connection."""
    return [
        # readers keep going while the cache upserts
        "PRAGMA journal_mode=WAL",
        "PRAGMA synchronous=NORMAL",
        f"PRAGMA busy_timeout={int(busy_timeout_ms)}",
        "PRAGMA foreign_keys=ON",
    ]


def _install_sqlite_pragmas(engine: AsyncEngine, busy_timeout_ms: int) -> None:
    pragmas = _sqlite_pragmas(busy_timeout_ms)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        try:
            for pragma in pragmas:
                cursor.execute(pragma)
        finally:
            cursor.close()


def create_engine(settings: Settings) -> AsyncEngine:
    """Create an async SQLAlchemy engine based on settings.

    SQLite connections run in WAL mode with a busy timeout, so concurrent
    cache writers wait for the lock instead of failing with "database is
    locked". Postgres gets a sized, pre-pinged pool.
    """
    if settings.db_backend == "sqlite":
        engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_ms / 1000,
            },
        )
        _install_sqlite_pragmas(engine, settings.sqlite_busy_timeout_ms)
    else:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
            pool_pre_ping=True,
        )
    logger.debug("db_engine_created", backend=settings.db_backend, dialect=engine.dialect.name)
    return engine
