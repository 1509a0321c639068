"""Cost-of-living resolution: fresh cache, then sources in order, then stale cache."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from market_intel_core.exceptions import MarketIntelError
from market_intel_core.interfaces.location import LocationMetricsStore, LocationSource
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings

logger = structlog.get_logger()


class MultiSourceLocationDataResolver:
    """Resolves a LocationQuery to metrics without ever inventing numbers.

    Sources are tried one at a time in priority order; their HTTP traffic
    already goes through the shared fetch queue. Returns None when no source
    clears the confidence threshold and nothing was ever stored for the key.
    """

    def __init__(
        self,
        settings: Settings,
        store: LocationMetricsStore,
        sources: Sequence[LocationSource],
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._sources = list(sources)
        self._max_age_days = settings.location_cache_max_age_days
        self._threshold = settings.location_confidence_threshold
        self._clock = clock or (lambda: datetime.now(UTC))

    async def resolve(self, query: LocationQuery) -> ScrapedMetricSet | None:
        """Fresh stored metrics, else the first accepted source result, else stale data."""
        key = query.key
        cached = await self._store.get_by_key(key)
        if cached is not None:
            age = cached.age_days(self._clock())
            if age < self._max_age_days:
                logger.info("location_cache_hit", location_key=key, age_days=round(age, 1))
                return cached

        normalized = query.normalized()
        for source in self._sources:
            try:
                metrics = await source.fetch(normalized)
            except MarketIntelError as e:
                logger.warning(
                    "location_source_failed",
                    source=source.name,
                    location_key=key,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue

            if metrics.confidence <= self._threshold:
                logger.info(
                    "location_source_below_threshold",
                    source=source.name,
                    location_key=key,
                    confidence=round(metrics.confidence, 3),
                    threshold=self._threshold,
                )
                continue

            accepted = metrics.model_copy(
                update={
                    "location_key": key,
                    "city": query.city,
                    "country": query.country,
                    "state": query.state,
                }
            ).with_attribution(source.attribution)
            stored = await self._store.upsert(accepted)
            logger.info(
                "location_metrics_accepted",
                source=source.name,
                location_key=key,
                confidence=round(accepted.confidence, 3),
            )
            return stored

        if cached is not None:
            logger.warning(
                "location_metrics_degraded",
                location_key=key,
                age_days=round(cached.age_days(self._clock()), 1),
                source=cached.source,
            )
            return cached

        logger.warning("location_metrics_unavailable", location_key=key)
        return None

    async def seed_locations(
        self, queries: Sequence[LocationQuery]
    ) -> dict[str, ScrapedMetricSet | None]:
        """Warm the store for several locations, one after another.

        Spacing comes from the fetch queue; a failure for one location does
        not stop the rest.
        """
        seeded: dict[str, ScrapedMetricSet | None] = {}
        for query in queries:
            seeded[query.key] = await self.resolve(query)
        logger.info(
            "location_seeding_complete",
            requested=len(queries),
            resolved=sum(1 for v in seeded.values() if v is not None),
        )
        return seeded
