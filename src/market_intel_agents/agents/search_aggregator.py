"""Concurrent three-way search fan-out with result filtering."""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from market_intel_agents.agents.base import BaseStage
from market_intel_agents.observability.tracing import traced_stage
from market_intel_agents.tools.retry import RetryPolicy
from market_intel_core.constants import (
    CAREER_LEVEL_SEARCH_TERMS,
    DEFAULT_RELEVANCE,
    PLACEHOLDER_MARKERS,
    SEARCH_DOMAIN_HINTS,
)
from market_intel_core.exceptions import SearchProviderError
from market_intel_core.interfaces.search import RawSearchHit, SearchProvider
from market_intel_core.models.analysis import AnalysisRequest
from market_intel_core.models.location import split_location
from market_intel_core.models.search import (
    AggregatedSearch,
    SearchResult,
    SourceCategory,
    is_well_formed_url,
)
from market_intel_core.state import AnalysisState

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings

logger = structlog.get_logger()

CATEGORY_ORDER = (
    SourceCategory.SALARY_DATA,
    SourceCategory.COMPANY_INFO,
    SourceCategory.MARKET_TRENDS,
)


def looks_like_placeholder(content: str | None) -> bool:
    """True for empty text or text a provider emits instead of real sourced content."""
    if not content or not content.strip():
        return True
    lowered = content.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def normalize_relevance(score: object) -> float:
    """Provider score clamped into [0, 1]; missing or non-numeric means the default."""
    if isinstance(score, bool) or not isinstance(score, int | float):
        return DEFAULT_RELEVANCE
    if not math.isfinite(score):
        return DEFAULT_RELEVANCE
    return min(1.0, max(0.0, float(score)))


def build_queries(request: AnalysisRequest, year: int) -> dict[SourceCategory, str]:
    """Literal query string per category."""
    level = CAREER_LEVEL_SEARCH_TERMS.get(request.profile.career_level or "", "")
    _, _, job_country = split_location(request.location)
    _, _, home_country = split_location(request.profile.location)
    country = job_country or home_country or ""
    location = request.location or country

    queries = {
        SourceCategory.SALARY_DATA: (
            f"{level} {request.job_title} salary {location} {year} salary compensation {year}"
        ),
        SourceCategory.COMPANY_INFO: (
            f'"{request.company}" employee reviews salary benefits glassdoor'
        ),
        SourceCategory.MARKET_TRENDS: (
            f"{request.job_title} job market demand trends {country} {year}"
        ),
    }
    return {category: " ".join(q.split()) for category, q in queries.items()}


class SearchAggregator(BaseStage):
    """Runs the compensation, employer and market searches concurrently.

    Branches settle independently: one failing branch neither cancels the
    others nor fails the aggregate. Surviving results are filtered, tagged
    with their category, and de-duplicated by URL (first occurrence wins).
    """

    stage_name = "search_aggregator"

    def __init__(
        self,
        settings: Settings,
        provider: SearchProvider,
        retry_policy: RetryPolicy | None = None,
        today: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(settings)
        self._provider = provider
        self._retry = retry_policy or RetryPolicy(
            max_attempts=settings.search_max_attempts,
            base_delay=settings.search_retry_base_seconds,
            max_delay=settings.search_retry_max_seconds,
            retry_on=(Exception,),
        )
        self._today = today or (lambda: datetime.now(UTC))
        self._max_results = {
            SourceCategory.SALARY_DATA: settings.salary_results,
            SourceCategory.COMPANY_INFO: settings.company_results,
            SourceCategory.MARKET_TRENDS: settings.market_results,
        }

    @traced_stage("searching")
    async def run(self, state: AnalysisState) -> AnalysisState:
        state.search = await self.aggregate(state.request)
        return state

    async def aggregate(self, request: AnalysisRequest) -> AggregatedSearch:
        """Fan out, wait for every branch, then filter and merge."""
        queries = build_queries(request, self._today().year)
        self._log_start({"queries": len(queries)})
        start = time.monotonic()

        branches = [
            asyncio.ensure_future(self._search_branch(category, queries[category]))
            for category in CATEGORY_ORDER
        ]
        # Shielded: if our caller is cancelled the in-flight searches still finish
        outcomes = await asyncio.shield(asyncio.gather(*branches, return_exceptions=True))

        results: list[SearchResult] = []
        failed: list[SourceCategory] = []
        seen_urls: set[str] = set()
        discarded = 0
        for category, outcome in zip(CATEGORY_ORDER, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                failed.append(category)
                logger.warning(
                    "search_branch_failed",
                    category=category.value,
                    error_type=type(outcome).__name__,
                    error=str(outcome),
                )
                continue
            kept, dropped = self._filter_hits(outcome, category, seen_urls)
            results.extend(kept)
            discarded += dropped

        if len(failed) == len(CATEGORY_ORDER):
            msg = "every search branch failed"
            raise SearchProviderError(msg)

        aggregated = AggregatedSearch(
            results=results,
            queries=queries,
            failed_categories=failed,
            discarded_count=discarded,
        )
        self._log_end(
            time.monotonic() - start,
            {
                "results": aggregated.source_count,
                "discarded": discarded,
                "failed_categories": [c.value for c in failed],
            },
        )
        return aggregated

    async def _search_branch(self, category: SourceCategory, query: str) -> list[RawSearchHit]:
        """One category's search, each attempt bounded by the search timeout."""

        async def _attempt() -> list[RawSearchHit]:
            return await asyncio.wait_for(
                self._provider.search(
                    query,
                    domain_hints=SEARCH_DOMAIN_HINTS.get(category.value),
                    max_results=self._max_results[category],
                ),
                timeout=self.settings.search_timeout_seconds,
            )

        return await self._retry.call(_attempt)

    @staticmethod
    def _filter_hits(
        hits: list[RawSearchHit], category: SourceCategory, seen_urls: set[str]
    ) -> tuple[list[SearchResult], int]:
        """Drop malformed URLs, placeholder content and duplicate URLs."""
        kept: list[SearchResult] = []
        dropped = 0
        for hit in hits:
            if not is_well_formed_url(hit.url):
                dropped += 1
                logger.debug("search_result_discarded", reason="bad_url", url=hit.url)
                continue
            if looks_like_placeholder(hit.content):
                dropped += 1
                logger.info("search_result_discarded", reason="placeholder", url=hit.url)
                continue
            if hit.url in seen_urls:
                dropped += 1
                continue
            seen_urls.add(hit.url)
            kept.append(
                SearchResult(
                    title=hit.title.strip() or hit.url,
                    url=hit.url,
                    content=hit.content.strip(),
                    relevance=normalize_relevance(hit.score),
                    source_category=category,
                )
            )
        return kept, dropped
