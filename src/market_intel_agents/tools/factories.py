"""Factory functions for creating tool instances from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from market_intel_agents.tools.fetch_queue import RateLimitedFetchQueue
from market_intel_agents.tools.location_sources import DEFAULT_SOURCE_ORDER
from market_intel_core.exceptions import ConfigurationError
from market_intel_core.interfaces.cache import AnalysisCacheStore
from market_intel_core.interfaces.location import LocationSource
from market_intel_core.interfaces.search import SearchProvider
from market_intel_core.interfaces.synthesis import SynthesisEngine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from market_intel_core.config.settings import Settings


def create_search_provider(settings: Settings) -> SearchProvider:
    """Create a search provider based on settings.

    Returns ``DuckDuckGoSearchProvider`` when ``settings.search_provider ==
    "duckduckgo"``, otherwise ``TavilySearchProvider``, which needs a key.
    """
    if settings.search_provider == "duckduckgo":
        from market_intel_agents.tools.duckduckgo_search import DuckDuckGoSearchProvider

        return DuckDuckGoSearchProvider()

    if settings.tavily_api_key is None:
        msg = "MI_TAVILY_API_KEY is required when search_provider=tavily"
        raise ConfigurationError(msg)

    from market_intel_agents.tools.web_search import TavilySearchProvider

    return TavilySearchProvider(api_key=settings.tavily_api_key.get_secret_value())


def create_synthesis_engine(settings: Settings) -> SynthesisEngine:
    """Create the Anthropic synthesis engine; requires an API key."""
    if settings.anthropic_api_key is None:
        msg = "MI_ANTHROPIC_API_KEY is required for synthesis"
        raise ConfigurationError(msg)

    from market_intel_agents.tools.synthesis_engine import AnthropicSynthesisEngine

    return AnthropicSynthesisEngine(
        api_key=settings.anthropic_api_key.get_secret_value(),
        model=settings.synthesis_model,
        max_tokens=settings.synthesis_max_tokens,
    )


def create_fetch_queue(settings: Settings) -> RateLimitedFetchQueue:
    """The one queue every location source shares."""
    return RateLimitedFetchQueue(min_delay=settings.location_fetch_delay_seconds)


def create_location_sources(
    settings: Settings, queue: RateLimitedFetchQueue
) -> list[LocationSource]:
    """Numbeo, Expatistan, Teleport in priority order, all on the same queue."""
    return [
        source_cls(
            queue=queue,
            user_agent=settings.scraper_user_agent,
            timeout_seconds=settings.location_http_timeout_seconds,
        )
        for source_cls in DEFAULT_SOURCE_ORDER
    ]


def create_analysis_cache_store(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> AnalysisCacheStore:
    """SQL store by default; Redis when ``cache_backend == "redis"``."""
    if settings.cache_backend == "redis":
        from redis.asyncio import Redis

        from market_intel_infra.cache.redis_cache import RedisAnalysisCacheStore

        return RedisAnalysisCacheStore(Redis.from_url(settings.redis_url))

    from market_intel_infra.cache.db_cache import SQLAnalysisCacheStore

    return SQLAnalysisCacheStore(session_factory)
