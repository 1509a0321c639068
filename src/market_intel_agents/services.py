"""Explicit service instances built once per process from settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from market_intel_agents.agents.location_resolver import MultiSourceLocationDataResolver
from market_intel_agents.orchestrator.salary_intelligence import SalaryIntelligenceOrchestrator
from market_intel_agents.tools.factories import (
    create_analysis_cache_store,
    create_fetch_queue,
    create_location_sources,
    create_search_provider,
    create_synthesis_engine,
)
from market_intel_infra.cache.analysis_cache import AnalysisCache
from market_intel_infra.db.engine import create_engine
from market_intel_infra.db.repositories.location_repo import SQLLocationMetricsStore
from market_intel_infra.db.session import create_session_factory, init_db

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from market_intel_agents.tools.fetch_queue import RateLimitedFetchQueue
    from market_intel_core.config.settings import Settings

logger = structlog.get_logger()


@dataclass
class Services:
    """Process-wide collaborators; API-backed pieces are created on first use."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    cache: AnalysisCache
    _fetch_queue: RateLimitedFetchQueue | None = field(default=None, repr=False)
    _orchestrator: SalaryIntelligenceOrchestrator | None = field(default=None, repr=False)
    _resolver: MultiSourceLocationDataResolver | None = field(default=None, repr=False)

    @classmethod
    async def create(cls, settings: Settings, *, init_tables: bool = False) -> Services:
        """Open the database and cache store; optionally create tables (SQLite)."""
        engine = create_engine(settings)
        if init_tables:
            await init_db(engine)
        session_factory = create_session_factory(engine)
        cache = AnalysisCache(
            store=create_analysis_cache_store(settings, session_factory),
            ttl=timedelta(hours=settings.analysis_cache_ttl_hours),
            format_version=settings.cache_format_version,
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            cache=cache,
        )

    @property
    def fetch_queue(self) -> RateLimitedFetchQueue:
        """The single queue every location source shares."""
        if self._fetch_queue is None:
            self._fetch_queue = create_fetch_queue(self.settings)
        return self._fetch_queue

    @property
    def orchestrator(self) -> SalaryIntelligenceOrchestrator:
        """Requires search and synthesis credentials on first access."""
        if self._orchestrator is None:
            self._orchestrator = SalaryIntelligenceOrchestrator.from_components(
                settings=self.settings,
                cache=self.cache,
                search_provider=create_search_provider(self.settings),
                engine=create_synthesis_engine(self.settings),
            )
        return self._orchestrator

    @property
    def location_resolver(self) -> MultiSourceLocationDataResolver:
        if self._resolver is None:
            self._resolver = MultiSourceLocationDataResolver(
                settings=self.settings,
                store=SQLLocationMetricsStore(self.session_factory),
                sources=create_location_sources(self.settings, self.fetch_queue),
            )
        return self._resolver

    async def aclose(self) -> None:
        """Stop the fetch queue worker, then release the cache store and engine."""
        if self._fetch_queue is not None:
            await self._fetch_queue.stop()
        await self.cache.aclose()
        await self.engine.dispose()
        logger.debug("services_closed")
