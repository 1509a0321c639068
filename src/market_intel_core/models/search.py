"""Search result models used by the aggregator and the synthesizer."""

from __future__ import annotations

from enum import StrEnum
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from market_intel_core.constants import ALLOWED_URL_SCHEMES, DEFAULT_RELEVANCE


class SourceCategory(StrEnum):
    """Which aggregator branch produced a result."""

    SALARY_DATA = "salary_data"
    COMPANY_INFO = "company_info"
    MARKET_TRENDS = "market_trends"


def is_well_formed_url(url: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url or not isinstance(url, str):
        return False
    candidate = url.strip()
    if candidate != url or " " in candidate:
        return False
    parsed = urlparse(candidate)
    return parsed.scheme.lower() in ALLOWED_URL_SCHEMES and bool(parsed.netloc)


class SearchResult(BaseModel):
    """A filtered, categorized search result."""

    title: str = Field(description="Result title")
    url: str = Field(description="Absolute http(s) URL")
    content: str = Field(description="Content excerpt")
    relevance: float = Field(ge=0.0, le=1.0, allow_inf_nan=False, description="Relevance 0-1")
    source_category: SourceCategory = Field(description="Aggregator branch")

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Reject relative, malformed, or non-http URLs."""
        if not is_well_formed_url(value):
            msg = f"not a well-formed absolute URL: {value!r}"
            raise ValueError(msg)
        return value


class AggregatedSearch(BaseModel):
    """Output of one fan-out search run."""

    results: list[SearchResult] = Field(default_factory=list, description="Surviving results")
    queries: dict[SourceCategory, str] = Field(
        default_factory=dict, description="Literal query string per category"
    )
    failed_categories: list[SourceCategory] = Field(
        default_factory=list, description="Branches that errored after retries"
    )
    discarded_count: int = Field(default=0, description="Results removed by filtering")

    def by_category(self, category: SourceCategory) -> list[SearchResult]:
        """Results belonging to one branch, in provider order."""
        return [r for r in self.results if r.source_category == category]

    @property
    def is_empty(self) -> bool:
        """True when nothing survived filtering in any category."""
        return not self.results

    @property
    def source_count(self) -> int:
        """Number of surviving results."""
        return len(self.results)

    @property
    def average_relevance(self) -> float:
        """Mean relevance of surviving results (default relevance when empty)."""
        if not self.results:
            return DEFAULT_RELEVANCE
        return sum(r.relevance for r in self.results) / len(self.results)
