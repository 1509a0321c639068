"""Abstract location source and location metrics store interfaces."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from market_intel_core.models.location import LocationQuery, ScrapedMetricSet


@runtime_checkable
class LocationSource(Protocol):
    """One cost-of-living data source adapter."""

    name: str
    attribution: str

    async def fetch(self, query: LocationQuery) -> ScrapedMetricSet:
        """Fetch and parse metrics; raises ExternalSourceUnavailableError or ParseFailureError."""
        ...


@runtime_checkable
class LocationMetricsStore(Protocol):
    """Persistence for the latest metric set per normalized location key."""

    async def get_by_key(self, location_key: str) -> ScrapedMetricSet | None:
        """Return the stored metrics for a key, regardless of age."""
        ...

    async def upsert(self, metrics: ScrapedMetricSet) -> ScrapedMetricSet:
        """Store metrics, superseding any prior record for the same key."""
        ...
