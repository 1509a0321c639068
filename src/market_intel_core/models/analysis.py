"""Analysis request, synthesis payload, and report models."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from market_intel_core.constants import REPORT_FORMAT_VERSION
from market_intel_core.models.search import SourceCategory

CareerLevel = Literal["entry", "junior", "mid", "senior", "lead", "principal", "executive"]
WorkMode = Literal["remote", "hybrid", "onsite", "any"]


class MarketPosition(StrEnum):
    """Where an offer sits relative to the market."""

    BELOW_MARKET = "below_market"
    AT_MARKET = "at_market"
    ABOVE_MARKET = "above_market"


class RequesterProfile(BaseModel):
    """The slice of a requester's profile that personalizes an analysis."""

    career_level: CareerLevel | None = Field(default=None, description="Career level")
    years_of_experience: float = Field(default=0.0, ge=0, description="Years of experience")
    skills: list[str] = Field(default_factory=list, description="Key skills")
    location: str | None = Field(default=None, description="Current location")
    current_salary: float | None = Field(default=None, ge=0, description="Current salary")
    expected_salary: float | None = Field(default=None, ge=0, description="Expected salary")
    currency: str = Field(
        default="USD",
        pattern=r"^[A-Za-z]{3}$",
        description="ISO currency code of the salary figures",
    )
    work_mode: WorkMode | None = Field(default=None, description="Work-mode preference")
    willing_to_relocate: bool | None = Field(default=None, description="Relocation preference")
    has_resume: bool = Field(default=False, description="Whether a resume is on file")
    summary: str | None = Field(
        default=None, description="Free-text profile summary; prompt only, not fingerprinted"
    )

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    def summary_lines(self) -> list[str]:
        """Human-readable profile facts for the synthesis prompt."""
        lines: list[str] = []
        if self.career_level:
            lines.append(f"Career level: {self.career_level}")
        if self.years_of_experience:
            lines.append(f"Years of experience: {self.years_of_experience:g}")
        if self.skills:
            lines.append(f"Key skills: {', '.join(self.skills)}")
        if self.location:
            lines.append(f"Current location: {self.location}")
        if self.current_salary is not None:
            lines.append(f"Current salary: {self.current_salary:,.0f} {self.currency}")
        if self.expected_salary is not None:
            lines.append(f"Expected salary: {self.expected_salary:,.0f} {self.currency}")
        if self.work_mode:
            lines.append(f"Work mode preference: {self.work_mode}")
        if self.willing_to_relocate is not None:
            lines.append(f"Willing to relocate: {'yes' if self.willing_to_relocate else 'no'}")
        if self.summary:
            lines.append(f"Summary: {self.summary}")
        return lines

    def data_used(self) -> list[str]:
        """Names of the profile fields that carried information into the analysis."""
        used: list[str] = []
        if self.location:
            used.append("Location")
        if self.current_salary is not None:
            used.append("Current Salary")
        if self.expected_salary is not None:
            used.append("Expected Salary")
        if self.has_resume:
            used.append("Resume Content")
        if self.skills:
            used.append("Skills")
        if self.career_level:
            used.append("Career Level")
        if self.years_of_experience > 0:
            used.append("Years of Experience")
        if self.work_mode:
            used.append("Work Mode Preference")
        if self.willing_to_relocate is not None:
            used.append("Relocation Preference")
        return used


class AnalysisRequest(BaseModel):
    """Inbound request: one job opportunity for one requester."""

    subject_id: str = Field(min_length=1, description="Job identity")
    requester_id: str = Field(min_length=1, description="Requesting user identity")
    job_title: str = Field(min_length=1, description="Job title")
    company: str = Field(min_length=1, description="Employer name")
    location: str = Field(default="", description="Job location as posted")
    job_description: str = Field(default="", description="Job description text")
    requirements: str = Field(default="", description="Requirements text")
    posted_salary: str | None = Field(default=None, description="Salary as posted, if any")
    profile: RequesterProfile = Field(
        default_factory=RequesterProfile, description="Requester profile context"
    )
    force_refresh: bool = Field(default=False, description="Skip the cache read")

    @property
    def is_remote(self) -> bool:
        """Remote detection from location and description text."""
        haystack = f"{self.location} {self.job_description}".lower()
        return "remote" in haystack or "work from home" in haystack


class SalaryRange(BaseModel):
    """Validated compensation range."""

    min: float = Field(ge=0, allow_inf_nan=False, description="Lower bound")
    max: float = Field(ge=0, allow_inf_nan=False, description="Upper bound")
    median: float = Field(ge=0, allow_inf_nan=False, description="Median")
    currency: str = Field(min_length=3, max_length=3, description="ISO currency code")
    confidence: float = Field(ge=0.0, le=1.0, allow_inf_nan=False, description="Confidence 0-1")

    @model_validator(mode="after")
    def validate_ordering(self) -> SalaryRange:
        """Ensure min <= median <= max."""
        if not self.min <= self.median <= self.max:
            msg = f"salary range out of order: min={self.min} median={self.median} max={self.max}"
            raise ValueError(msg)
        return self


class PersonalizedInsights(BaseModel):
    """Profile-specific commentary on the opportunity."""

    fit_for_profile: Literal["excellent", "good", "fair", "poor"] | None = Field(
        default=None, description="Overall fit for the requester"
    )
    career_progression: str = Field(default="", description="Career progression outlook")
    experience_alignment: str = Field(default="", description="Experience vs requirements")
    location_analysis: str = Field(default="", description="Location and cost-of-living notes")
    matching_skills: list[str] = Field(default_factory=list, description="Skills that match")
    missing_skills: list[str] = Field(default_factory=list, description="Skills that are missing")


class Recommendations(BaseModel):
    """Actionable recommendations for the requester."""

    negotiation_strategy: list[str] = Field(default_factory=list, description="Negotiation tips")
    career_advice: list[str] = Field(default_factory=list, description="Career advice")
    action_items: list[str] = Field(default_factory=list, description="Next steps")
    red_flags: list[str] = Field(default_factory=list, description="Concerns worth checking")
    opportunities: list[str] = Field(default_factory=list, description="Upside to pursue")


class SynthesisPayload(BaseModel):
    """Structured payload as returned by the synthesis engine.

    Deliberately lenient: every numeric field is optional and unconstrained so
    that the validator, not the transport layer, decides what is acceptable.
    """

    salary_min: float | None = Field(default=None, description="Lower bound of the range")
    salary_max: float | None = Field(default=None, description="Upper bound of the range")
    salary_median: float | None = Field(default=None, description="Median of the range")
    currency: str | None = Field(default=None, description="ISO currency code")
    confidence: float | None = Field(default=None, description="Self-reported confidence 0-1")
    market_position: str | None = Field(
        default=None, description="One of below_market, at_market, above_market"
    )
    insights: PersonalizedInsights = Field(
        default_factory=PersonalizedInsights, description="Personalized insights"
    )
    recommendations: Recommendations = Field(
        default_factory=Recommendations, description="Recommendations"
    )

    @property
    def confidence_is_valid(self) -> bool:
        """True when the self-reported confidence is a finite number in [0, 1]."""
        conf = self.confidence
        if conf is None or isinstance(conf, bool):
            return False
        return math.isfinite(conf) and 0.0 <= conf <= 1.0


class SourceCitation(BaseModel):
    """A search result cited by a report."""

    title: str = Field(description="Result title")
    url: str = Field(description="Result URL")
    relevance: float = Field(ge=0.0, le=1.0, description="Relevance 0-1")
    category: SourceCategory = Field(description="Aggregator branch")


class EdgeCaseNotes(BaseModel):
    """Limitations detected in the request that affect report scope."""

    is_remote_position: bool = Field(default=False, description="Remote role detected")
    has_salary_info: bool = Field(default=False, description="A salary was posted")
    confidence_adjustments: list[str] = Field(default_factory=list, description="Caveats")
    data_limitations: list[str] = Field(default_factory=list, description="Known data gaps")
    analysis_scope: Literal["full", "limited", "basic"] = Field(
        default="basic", description="How complete the analysis can be"
    )


class ReportMetadata(BaseModel):
    """Provenance of a synthesized report."""

    analysis_id: str = Field(description="Unique analysis identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When synthesis finished"
    )
    processing_time_ms: int = Field(ge=0, description="Elapsed pipeline time in ms")
    format_version: str = Field(default=REPORT_FORMAT_VERSION, description="Report schema version")
    prompt_version: str | None = Field(default=None, description="Prompt template version")
    model: str | None = Field(default=None, description="Synthesis model used")
    confidence_recomputed: bool = Field(
        default=False, description="Whether confidence was recomputed from sources"
    )


class AnalysisReport(BaseModel):
    """Validated, personalized market-intelligence report."""

    salary_range: SalaryRange = Field(description="Validated salary range")
    market_position: MarketPosition = Field(description="Position vs market")
    personalized_insights: PersonalizedInsights = Field(description="Personalized insights")
    recommendations: Recommendations = Field(description="Recommendations")
    sources: list[SourceCitation] = Field(default_factory=list, description="Cited sources")
    search_queries: list[str] = Field(default_factory=list, description="Queries used")
    profile_data_used: list[str] = Field(default_factory=list, description="Profile fields used")
    edge_cases: EdgeCaseNotes = Field(default_factory=EdgeCaseNotes, description="Scope notes")
    metadata: ReportMetadata = Field(description="Report provenance")


class AnalysisResponse(BaseModel):
    """What the caller receives for a successful analysis."""

    report: AnalysisReport = Field(description="The report")
    cached: bool = Field(description="Served from the analysis cache")
    sources: list[SourceCitation] = Field(default_factory=list, description="Cited sources")
    processing_time_ms: int = Field(ge=0, description="Time spent serving this call")


class CacheCheckResult(BaseModel):
    """Result of the cache-check-only mode."""

    cached: bool = Field(description="Whether a live report exists for this input")
    report: AnalysisReport | None = Field(default=None, description="The cached report")
