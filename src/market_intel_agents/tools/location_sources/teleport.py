"""Teleport public API adapter (city search -> urban area -> scores)."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import structlog

from market_intel_agents.tools.location_sources.base import HttpLocationSource
from market_intel_core.exceptions import ParseFailureError
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet

logger = structlog.get_logger()

TELEPORT_SEARCH_URL = "https://api.teleport.org/api/cities/?search={query}"

TELEPORT_CONFIDENCE = 0.55
COST_SCALE = 100.0
HOUSING_SCALE = 80.0


def category_score(scores: dict[str, Any], name: str) -> float | None:
    """A category's score_out_of_10 normalized to 0-1, or None when absent."""
    for category in scores.get("categories", []):
        if category.get("name") == name and category.get("score_out_of_10") is not None:
            return float(category["score_out_of_10"]) / 10
    return None


def _href(links: dict[str, Any], rel: str) -> str | None:
    """Follow a HAL link that may be an object or a list of objects."""
    target = links.get(rel)
    if isinstance(target, list):
        target = target[0] if target else None
    if isinstance(target, dict):
        return target.get("href")
    return None


class TeleportSource(HttpLocationSource):
    """Maps Teleport urban-area scores onto cost-of-living indices.

    Three queued GETs per lookup: search, city, and urban-area scores.
    """

    name = "teleport_api"
    attribution = "Data sourced from Teleport.org with attribution - https://teleport.org"

    def search_url(self, query: LocationQuery) -> str:
        term = query.city if not query.country else f"{query.city}, {query.country}"
        return TELEPORT_SEARCH_URL.format(query=quote(term))

    async def _fetch(self, query: LocationQuery) -> ScrapedMetricSet:
        search = await self._get_json(self.search_url(query))
        results = search.get("_embedded", {}).get("city:search-results", [])
        if not results:
            raise ParseFailureError(f"teleport: no city match for {query.city!r}")

        city_url = _href(results[0].get("_links", {}), "city:item")
        if not city_url:
            raise ParseFailureError("teleport: search result has no city link")
        city = await self._get_json(city_url)

        links = city.get("_links", {})
        urban_area = _href(links, "city:urban_area") or _href(links, "city:urban_areas")
        if not urban_area:
            raise ParseFailureError(f"teleport: {query.city!r} has no urban area")
        scores = await self._get_json(f"{urban_area.rstrip('/')}/scores/")
        return self.parse_scores(scores, query)

    def parse_scores(self, scores: dict[str, Any], query: LocationQuery) -> ScrapedMetricSet:
        cost = category_score(scores, "Cost of Living")
        if cost is None:
            raise ParseFailureError("teleport: Cost of Living score missing")
        housing = category_score(scores, "Housing")
        return self._metric_set(
            query,
            cost_of_living_index=cost * COST_SCALE,
            rent_index=housing * HOUSING_SCALE if housing is not None else None,
            confidence=TELEPORT_CONFIDENCE,
        )
