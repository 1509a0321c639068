"""Expatistan cost-of-living page adapter."""

from __future__ import annotations

import re

from market_intel_agents.tools.location_sources.base import HttpLocationSource, parse_number
from market_intel_core.exceptions import ParseFailureError
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet

EXPATISTAN_URL = "https://www.expatistan.com/cost-of-living/{slug}"

_PRICE_INDEX = re.compile(r"cost[^>]*index[^>]*?(\d+)", re.IGNORECASE)

# Expatistan's index is relative to its own baseline; scale onto NYC = 100
NYC_SCALE = 0.8
EXPATISTAN_CONFIDENCE = 0.6


def expatistan_slug(query: LocationQuery) -> str:
    return "-".join(query.city.lower().split())


class ExpatistanSource(HttpLocationSource):
    """Scrapes the overall price index from Expatistan."""

    name = "expatistan_scrape"
    attribution = (
        "Data sourced from Expatistan.com with attribution - https://www.expatistan.com"
    )

    def url_for(self, query: LocationQuery) -> str:
        return EXPATISTAN_URL.format(slug=expatistan_slug(query))

    async def _fetch(self, query: LocationQuery) -> ScrapedMetricSet:
        html = await self._get_text(self.url_for(query))
        return self.parse(html, query)

    def parse(self, html: str, query: LocationQuery) -> ScrapedMetricSet:
        match = _PRICE_INDEX.search(html)
        relative = parse_number(match.group(1)) if match else None
        if not relative:
            raise ParseFailureError("expatistan: price index not found")
        return self._metric_set(
            query,
            cost_of_living_index=relative * NYC_SCALE,
            confidence=EXPATISTAN_CONFIDENCE,
        )
