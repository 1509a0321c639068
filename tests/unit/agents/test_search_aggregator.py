"""Tests for the concurrent search aggregator."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from market_intel_agents.agents.search_aggregator import (
    SearchAggregator,
    build_queries,
    looks_like_placeholder,
    normalize_relevance,
)
from market_intel_agents.tools.retry import RetryPolicy
from market_intel_core.exceptions import SearchProviderError
from market_intel_core.interfaces.search import RawSearchHit
from market_intel_core.models.search import SourceCategory
from market_intel_core.state import AnalysisState
from tests.mocks.mock_factories import make_profile, make_request
from tests.mocks.mock_tools import FakeSearchProvider

FAST_RETRY = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter=0.0)
FIXED_TODAY = datetime(2026, 3, 1, tzinfo=UTC)


def _aggregator(settings: MagicMock, provider: FakeSearchProvider) -> SearchAggregator:
    return SearchAggregator(
        settings,
        provider,
        retry_policy=FAST_RETRY,
        today=lambda: FIXED_TODAY,
    )


@pytest.mark.unit
class TestBuildQueries:
    """Literal query construction."""

    def test_three_categories(self) -> None:
        queries = build_queries(make_request(), 2026)
        assert set(queries) == set(SourceCategory)

    def test_salary_query_uses_level_location_year(self) -> None:
        queries = build_queries(make_request(), 2026)
        salary = queries[SourceCategory.SALARY_DATA]
        assert salary.startswith("senior Senior Backend Engineer salary Seattle, WA, USA 2026")
        assert "  " not in salary

    def test_company_query_quotes_company(self) -> None:
        queries = build_queries(make_request(company="Acme Corp"), 2026)
        assert queries[SourceCategory.COMPANY_INFO].startswith('"Acme Corp" employee reviews')

    def test_market_query_country_falls_back_to_profile(self) -> None:
        """Without a job location the requester's country is used."""
        request = make_request(location="", profile=make_profile(location="Toronto, Canada"))
        queries = build_queries(request, 2026)
        assert queries[SourceCategory.MARKET_TRENDS] == (
            "Senior Backend Engineer job market demand trends Canada 2026"
        )

    def test_no_level_no_location(self) -> None:
        request = make_request(location="", profile=make_profile(career_level=None, location=None))
        queries = build_queries(request, 2026)
        assert queries[SourceCategory.SALARY_DATA] == (
            "Senior Backend Engineer salary 2026 salary compensation 2026"
        )


@pytest.mark.unit
class TestFilters:
    """Placeholder detection and relevance normalization."""

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "   ",
            "Based on AI knowledge, engineers earn well.",
            "Lorem ipsum dolor sit amet",
            "See https://example.com for details",
        ],
    )
    def test_placeholders(self, content: str) -> None:
        assert looks_like_placeholder(content) is True

    def test_real_content(self) -> None:
        assert looks_like_placeholder("Median base salary is $170,000 in Seattle.") is False

    @pytest.mark.parametrize(
        ("score", "expected"),
        [(0.7, 0.7), (None, 0.5), (1.8, 1.0), (-3, 0.0), (float("nan"), 0.5), ("0.9", 0.5)],
    )
    def test_normalize_relevance(self, score: object, expected: float) -> None:
        assert normalize_relevance(score) == expected


@pytest.mark.unit
class TestSearchAggregator:
    """Fan-out, partial failure and filtering."""

    async def test_all_branches_succeed(self, mock_settings: MagicMock) -> None:
        provider = FakeSearchProvider()
        search = await _aggregator(mock_settings, provider).aggregate(make_request())

        assert search.source_count == 4
        assert search.failed_categories == []
        assert len(provider.calls) == 3
        assert [r.source_category for r in search.results] == [
            SourceCategory.SALARY_DATA,
            SourceCategory.SALARY_DATA,
            SourceCategory.COMPANY_INFO,
            SourceCategory.MARKET_TRENDS,
        ]
        # DuckDuckGo-style hit without a score gets the default relevance
        assert search.by_category(SourceCategory.MARKET_TRENDS)[0].relevance == 0.5

    async def test_domain_hints_and_result_counts(self, mock_settings: MagicMock) -> None:
        provider = FakeSearchProvider()
        await _aggregator(mock_settings, provider).aggregate(make_request())

        by_query = {q: (hints, n) for q, hints, n in provider.calls}
        salary_query = next(q for q in by_query if "salary compensation" in q)
        hints, max_results = by_query[salary_query]
        assert hints is not None and "glassdoor.com" in hints
        assert max_results == 8

    async def test_partial_failure_keeps_other_branches(self, mock_settings: MagicMock) -> None:
        """One failing branch is recorded and the others are kept."""
        provider = FakeSearchProvider(failures={"company_info": -1})
        search = await _aggregator(mock_settings, provider).aggregate(make_request())

        assert search.failed_categories == [SourceCategory.COMPANY_INFO]
        assert search.by_category(SourceCategory.COMPANY_INFO) == []
        assert search.source_count == 3
        assert provider.calls_for("company_info") == 2

    async def test_transient_failure_is_retried(self, mock_settings: MagicMock) -> None:
        provider = FakeSearchProvider(failures={"salary_data": 1})
        search = await _aggregator(mock_settings, provider).aggregate(make_request())

        assert search.failed_categories == []
        assert provider.calls_for("salary_data") == 2
        assert len(search.by_category(SourceCategory.SALARY_DATA)) == 2

    async def test_every_branch_failing_raises(self, mock_settings: MagicMock) -> None:
        provider = FakeSearchProvider(
            failures={"salary_data": -1, "company_info": -1, "market_trends": -1}
        )
        with pytest.raises(SearchProviderError):
            await _aggregator(mock_settings, provider).aggregate(make_request())

    async def test_timeout_counts_as_failure(self, mock_settings: MagicMock) -> None:
        mock_settings.search_timeout_seconds = 0.01
        provider = FakeSearchProvider(delay=0.2)
        with pytest.raises(SearchProviderError):
            await _aggregator(mock_settings, provider).aggregate(make_request())

    async def test_filters_placeholder_bad_url_and_duplicates(
        self, mock_settings: MagicMock
    ) -> None:
        """Scenario: placeholders, relative URLs and repeats never reach synthesis."""
        good = RawSearchHit(
            title="Levels", url="https://www.levels.fyi/x", content="$180k median", score=0.9
        )
        provider = FakeSearchProvider(
            hits={
                "salary_data": [
                    good,
                    RawSearchHit(
                        title="AI",
                        url="https://fake.org/a",
                        content="Based on AI knowledge the salary is high",
                        score=0.99,
                    ),
                    RawSearchHit(title="Rel", url="/salaries/x", content="$150k", score=0.8),
                    RawSearchHit(title="Empty", url="https://a.org/e", content="", score=0.8),
                ],
                "company_info": [good],
                "market_trends": [],
            }
        )
        search = await _aggregator(mock_settings, provider).aggregate(make_request())

        assert [r.url for r in search.results] == ["https://www.levels.fyi/x"]
        assert search.results[0].source_category == SourceCategory.SALARY_DATA
        assert search.discarded_count == 4

    async def test_everything_filtered_is_empty_not_error(
        self, mock_settings: MagicMock
    ) -> None:
        provider = FakeSearchProvider(
            hits={
                "salary_data": [
                    RawSearchHit(title="x", url="https://a.org", content="lorem ipsum", score=1)
                ],
                "company_info": [],
                "market_trends": [],
            }
        )
        search = await _aggregator(mock_settings, provider).aggregate(make_request())
        assert search.is_empty is True
        assert search.failed_categories == []

    async def test_branches_run_concurrently(self, mock_settings: MagicMock) -> None:
        """Three 0.1s searches finish in well under their serial total."""
        provider = FakeSearchProvider(delay=0.1)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await _aggregator(mock_settings, provider).aggregate(make_request())
        assert loop.time() - started < 0.25

    async def test_run_sets_state(
        self, mock_settings: MagicMock, analysis_state: AnalysisState
    ) -> None:
        await _aggregator(mock_settings, FakeSearchProvider()).run(analysis_state)
        assert analysis_state.search is not None
        assert SourceCategory.SALARY_DATA in analysis_state.search.queries
