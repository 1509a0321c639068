"""Numbeo cost-of-living page adapter."""

from __future__ import annotations

import re
from urllib.parse import quote

import structlog

from market_intel_agents.tools.location_sources.base import HttpLocationSource, parse_number
from market_intel_core.exceptions import ParseFailureError
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet

logger = structlog.get_logger()

NUMBEO_URL = "https://www.numbeo.com/cost-of-living/in/{slug}"

_COST_INDEX = re.compile(r"Cost of Living Index[^>]*>[\s\S]*?(\d+\.?\d*)", re.IGNORECASE)
_RENT_INDEX = re.compile(r"Rent Index[^>]*>[\s\S]*?(\d+\.?\d*)", re.IGNORECASE)
_GROCERIES_INDEX = re.compile(r"Groceries Index[^>]*>[\s\S]*?(\d+\.?\d*)", re.IGNORECASE)
_RESTAURANT_INDEX = re.compile(
    r"Restaurant Price Index[^>]*>[\s\S]*?(\d+\.?\d*)", re.IGNORECASE
)
_MONTHLY_SALARY = re.compile(
    r"Average Monthly Net Salary[^>]*>[\s\S]*?\$?([\d,]+\.?\d*)", re.IGNORECASE
)
_SAMPLE_SIZE = re.compile(r"Based on ([0-9,]+) prices", re.IGNORECASE)

BASE_CONFIDENCE = 0.4
MISSING_SUB_INDEX_PENALTY = 0.05
SALARY_BONUS = 0.1
MAX_CONFIDENCE = 0.95


def numbeo_slug(query: LocationQuery) -> str:
    """'new york' + 'united states' -> 'New-York-United-States'."""
    parts = [query.city]
    if query.country:
        parts.append(query.country)
    words = " ".join(parts).split()
    return quote("-".join(w[:1].upper() + w[1:] for w in words))


def numbeo_confidence(
    sample_size: int | None, has_salary: bool, missing_sub_indices: int
) -> float:
    """Base, minus a penalty per missing core sub-index, plus sample and salary signals."""
    base = BASE_CONFIDENCE - MISSING_SUB_INDEX_PENALTY * missing_sub_indices
    sample_term = (sample_size / 1000) * 0.5 if sample_size else 0.0
    return max(0.0, min(MAX_CONFIDENCE, base + sample_term + (SALARY_BONUS if has_salary else 0.0)))


def _first(pattern: re.Pattern[str], html: str) -> float | None:
    match = pattern.search(html)
    return parse_number(match.group(1)) if match else None


class NumbeoSource(HttpLocationSource):
    """Scrapes the public Numbeo city page."""

    name = "numbeo_scrape"
    attribution = "Data sourced from Numbeo.com with attribution - https://www.numbeo.com"

    def url_for(self, query: LocationQuery) -> str:
        return NUMBEO_URL.format(slug=numbeo_slug(query))

    async def _fetch(self, query: LocationQuery) -> ScrapedMetricSet:
        """GET the city page and parse it."""
        html = await self._get_text(self.url_for(query))
        return self.parse(html, query)

    def parse(self, html: str, query: LocationQuery) -> ScrapedMetricSet:
        """Extract indices, salary and sample size from a Numbeo page."""
        cost_index = _first(_COST_INDEX, html)
        if cost_index is None:
            raise ParseFailureError("numbeo: Cost of Living Index not found")

        sub_indices = {
            "rent_index": _first(_RENT_INDEX, html),
            "groceries_index": _first(_GROCERIES_INDEX, html),
            "restaurant_index": _first(_RESTAURANT_INDEX, html),
        }
        missing = sum(1 for v in sub_indices.values() if v is None)

        monthly_salary = _first(_MONTHLY_SALARY, html)
        annual_salary = monthly_salary * 12 if monthly_salary else None
        samples = _first(_SAMPLE_SIZE, html)
        sample_size = int(samples) if samples is not None else None

        confidence = numbeo_confidence(sample_size, annual_salary is not None, missing)
        logger.debug(
            "numbeo_parsed",
            city=query.city,
            cost_index=cost_index,
            missing_sub_indices=missing,
            sample_size=sample_size,
            confidence=round(confidence, 3),
        )
        return self._metric_set(
            query,
            cost_of_living_index=cost_index,
            avg_net_salary_usd=annual_salary,
            confidence=confidence,
            data_point_count=sample_size,
            **sub_indices,
        )
