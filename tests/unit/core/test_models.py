"""Tests for core domain models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from market_intel_core.exceptions import (
    CacheCorruptionError,
    ConfigurationError,
    CostLimitExceededError,
    ExternalSourceUnavailableError,
    InsufficientDataError,
    InvalidSynthesisError,
    MarketIntelError,
    ParseFailureError,
    SearchProviderError,
    SynthesisEngineError,
)
from market_intel_core.models.analysis import RequesterProfile, SalaryRange, SynthesisPayload
from market_intel_core.models.location import LocationQuery, split_location
from market_intel_core.models.outcome import AnalysisFailure, FailureKind, classify_failure
from market_intel_core.models.search import SearchResult, SourceCategory, is_well_formed_url
from tests.mocks.mock_factories import (
    make_cache_record,
    make_metric_set,
    make_profile,
    make_request,
    make_search,
)


@pytest.mark.unit
class TestLocationQuery:
    """Location key normalization."""

    def test_key_ignores_case_and_whitespace(self) -> None:
        """Inputs differing only in case and spacing share one key."""
        a = LocationQuery(city="New  York", country="United States", state="NY")
        b = LocationQuery(city=" new york ", country="UNITED STATES", state="ny")
        assert a.key == b.key == "new york|ny|united states|onsite"

    def test_remote_flag_is_part_of_key(self) -> None:
        """Remote and onsite lookups are cached separately."""
        onsite = LocationQuery(city="Berlin", country="Germany")
        remote = LocationQuery(city="Berlin", country="Germany", is_remote=True)
        assert onsite.key != remote.key

    def test_normalized_copy(self) -> None:
        """normalized() lower-cases every text field and keeps the key."""
        query = LocationQuery(city="São Paulo", country="Brazil", state=" ")
        normalized = query.normalized()
        assert normalized.city == "são paulo"
        assert normalized.state is None
        assert normalized.key == query.key


@pytest.mark.unit
class TestSplitLocation:
    """Parsing posted location strings."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Seattle, WA, USA", ("Seattle", "WA", "USA")),
            ("Berlin, Germany", ("Berlin", None, "Germany")),
            ("Canada", (None, None, "Canada")),
            ("", (None, None, None)),
            (None, (None, None, None)),
        ],
    )
    def test_split(self, text: str | None, expected: tuple[object, ...]) -> None:
        assert split_location(text) == expected


@pytest.mark.unit
class TestScrapedMetricSet:
    """Attribution and age."""

    def test_with_attribution_embeds_note_once(self) -> None:
        """The source string carries the attribution; repeating is a no-op."""
        metrics = make_metric_set(source="numbeo_scrape")
        attributed = metrics.with_attribution("Data sourced from Numbeo.com")
        assert attributed.source == (
            "numbeo_scrape_with_attribution - Data sourced from Numbeo.com"
        )
        assert attributed.with_attribution("other") is attributed

    def test_age_days(self) -> None:
        """Age is measured from captured_at."""
        captured = datetime(2026, 1, 1, tzinfo=UTC)
        metrics = make_metric_set(captured_at=captured)
        assert metrics.age_days(captured + timedelta(days=12)) == pytest.approx(12.0)

    def test_cost_index_must_be_positive(self) -> None:
        """A zero index is never stored."""
        with pytest.raises(ValidationError):
            make_metric_set(cost_of_living_index=0)


@pytest.mark.unit
class TestSearchModels:
    """URL validation and aggregate statistics."""

    @pytest.mark.parametrize(
        "url",
        ["/relative/path", "ftp://files.org/a", "not a url", "https://", "", " https://a.org"],
    )
    def test_malformed_urls(self, url: str) -> None:
        assert is_well_formed_url(url) is False

    def test_search_result_rejects_bad_url(self) -> None:
        with pytest.raises(ValidationError):
            SearchResult(
                title="t",
                url="javascript:alert(1)",
                content="c",
                relevance=0.5,
                source_category=SourceCategory.SALARY_DATA,
            )

    def test_average_relevance(self) -> None:
        """Average relevance over surviving results."""
        search = make_search(count=4, relevance=0.6)
        assert search.source_count == 4
        assert search.average_relevance == pytest.approx(0.6)
        assert len(search.by_category(SourceCategory.SALARY_DATA)) == 2


@pytest.mark.unit
class TestSalaryRange:
    """Range ordering invariant."""

    def test_out_of_order_rejected(self) -> None:
        with pytest.raises(ValidationError, match="out of order"):
            SalaryRange(min=100, max=90, median=95, currency="USD", confidence=0.5)

    def test_degenerate_range_allowed(self) -> None:
        salary = SalaryRange(min=100, max=100, median=100, currency="USD", confidence=0.5)
        assert salary.median == 100


@pytest.mark.unit
class TestSynthesisPayload:
    """Lenient payload parsing."""

    @pytest.mark.parametrize(
        ("confidence", "valid"),
        [(0.5, True), (0.0, True), (1.0, True), (None, False), (1.4, False), (-0.1, False)],
    )
    def test_confidence_is_valid(self, confidence: float | None, valid: bool) -> None:
        assert SynthesisPayload(confidence=confidence).confidence_is_valid is valid

    def test_nan_confidence_invalid(self) -> None:
        assert SynthesisPayload(confidence=float("nan")).confidence_is_valid is False

    def test_accepts_empty_payload(self) -> None:
        """Every field is optional so validation happens downstream."""
        payload = SynthesisPayload()
        assert payload.salary_min is None
        assert payload.insights.matching_skills == []


@pytest.mark.unit
class TestRequesterProfile:
    """Profile helpers used by the prompt and the report."""

    def test_data_used(self) -> None:
        used = make_profile().data_used()
        assert "Location" in used
        assert "Resume Content" in used
        assert "Skills" in used

    def test_empty_profile(self) -> None:
        profile = RequesterProfile()
        assert profile.data_used() == []
        assert profile.summary_lines() == []

    def test_is_remote_request(self) -> None:
        assert make_request(location="Remote - US").is_remote is True
        assert make_request().is_remote is False

    def test_currency_normalized(self) -> None:
        assert RequesterProfile(currency=" eur ").currency == "EUR"

    @pytest.mark.parametrize("currency", ["euro", "E1", ""])
    def test_currency_must_be_three_letters(self, currency: str) -> None:
        with pytest.raises(ValidationError):
            RequesterProfile(currency=currency)


@pytest.mark.unit
class TestCacheRecord:
    """Expiry check."""

    def test_is_expired(self) -> None:
        now = datetime(2026, 5, 1, tzinfo=UTC)
        record = make_cache_record(expires_at=now)
        assert record.is_expired(now) is False
        assert record.is_expired(now + timedelta(seconds=1)) is True

    def test_naive_expiry_treated_as_utc(self) -> None:
        now = datetime(2026, 5, 1, tzinfo=UTC)
        record = make_cache_record(expires_at=datetime(2026, 4, 30))
        assert record.is_expired(now) is True


@pytest.mark.unit
class TestClassifyFailure:
    """Durable vs transient failure classes."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (InsufficientDataError("x"), FailureKind.INSUFFICIENT_DATA),
            (InvalidSynthesisError("x"), FailureKind.INVALID_SYNTHESIS),
            (ConfigurationError("x"), FailureKind.CONFIGURATION),
            (SearchProviderError("x"), FailureKind.TRANSIENT),
            (SynthesisEngineError("x"), FailureKind.TRANSIENT),
            (CacheCorruptionError("x"), FailureKind.TRANSIENT),
            (ExternalSourceUnavailableError("x"), FailureKind.TRANSIENT),
            (RuntimeError("x"), FailureKind.TRANSIENT),
        ],
    )
    def test_classification(self, error: Exception, kind: FailureKind) -> None:
        assert classify_failure(error) == kind

    def test_retryable_flags(self) -> None:
        assert InsufficientDataError.retryable is False
        assert InvalidSynthesisError.retryable is False
        assert SearchProviderError.retryable is True

    @pytest.mark.parametrize(
        "error_cls",
        [
            ConfigurationError,
            ExternalSourceUnavailableError,
            ParseFailureError,
            InsufficientDataError,
            InvalidSynthesisError,
            CacheCorruptionError,
            SearchProviderError,
            SynthesisEngineError,
            CostLimitExceededError,
        ],
    )
    def test_failure_retryable_matches_error_flag(self, error_cls: type[MarketIntelError]) -> None:
        failure = AnalysisFailure(
            kind=classify_failure(error_cls("x")),
            error_type=error_cls.__name__,
            message="x",
            final_state="searching",
        )
        assert failure.retryable is error_cls.retryable
