"""Domain models for the market-intelligence pipeline."""

from market_intel_core.models.analysis import (
    AnalysisReport,
    AnalysisRequest,
    AnalysisResponse,
    CacheCheckResult,
    EdgeCaseNotes,
    MarketPosition,
    PersonalizedInsights,
    Recommendations,
    ReportMetadata,
    RequesterProfile,
    SalaryRange,
    SourceCitation,
    SynthesisPayload,
)
from market_intel_core.models.cache import CacheRecord
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet
from market_intel_core.models.outcome import (
    AnalysisFailure,
    AnalysisOutcome,
    AnalysisSuccess,
    FailureKind,
    classify_failure,
)
from market_intel_core.models.search import AggregatedSearch, SearchResult, SourceCategory

__all__ = [
    "AggregatedSearch",
    "AnalysisFailure",
    "AnalysisOutcome",
    "AnalysisReport",
    "AnalysisRequest",
    "AnalysisResponse",
    "AnalysisSuccess",
    "CacheCheckResult",
    "CacheRecord",
    "EdgeCaseNotes",
    "FailureKind",
    "LocationQuery",
    "MarketPosition",
    "PersonalizedInsights",
    "Recommendations",
    "ReportMetadata",
    "RequesterProfile",
    "SalaryRange",
    "ScrapedMetricSet",
    "SearchResult",
    "SourceCategory",
    "SynthesisPayload",
    "classify_failure",
]
