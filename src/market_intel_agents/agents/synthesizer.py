"""Single-shot synthesis: evidence + profile -> structured payload."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from market_intel_agents.agents.base import BaseStage
from market_intel_agents.observability.cost_tracker import CostTracker, LLMCallMetrics
from market_intel_agents.observability.tracing import traced_stage
from market_intel_agents.prompts.salary_synthesis import (
    EVIDENCE_ITEM,
    NO_EVIDENCE,
    NO_PROFILE,
    SALARY_SYNTHESIS_SYSTEM,
    SALARY_SYNTHESIS_USER,
)
from market_intel_core.constants import (
    CONTEXT_EXCERPT_CHARS,
    LOCATION_CURRENCIES,
    SALARY_EXCERPT_CHARS,
)
from market_intel_core.exceptions import InsufficientDataError
from market_intel_core.interfaces.synthesis import (
    SynthesisEngine,
    SynthesisPrompt,
    SynthesisResult,
)
from market_intel_core.models.analysis import AnalysisRequest
from market_intel_core.models.search import AggregatedSearch, SearchResult, SourceCategory
from market_intel_core.state import AnalysisState

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings

logger = structlog.get_logger()


def detect_currency(location: str | None, fallback: str = "USD") -> str:
    """Local currency for a job location; the fallback when nothing matches."""
    lowered = (location or "").lower()
    for needle, currency in LOCATION_CURRENCIES.items():
        if needle in lowered:
            return currency
    return fallback.strip().upper() or "USD"


def _excerpt(text: str, limit: int) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else f"{flat[:limit]}..."


def format_evidence(results: list[SearchResult], excerpt_chars: int) -> str:
    """Numbered evidence block for one category."""
    if not results:
        return NO_EVIDENCE
    return "\n".join(
        EVIDENCE_ITEM.format(
            index=i,
            title=r.title,
            url=r.url,
            relevance_pct=round(r.relevance * 100),
            excerpt=_excerpt(r.content, excerpt_chars),
        )
        for i, r in enumerate(results, start=1)
    )


def build_prompt(request: AnalysisRequest, search: AggregatedSearch) -> SynthesisPrompt:
    """System instructions plus the one user message embedding all evidence."""
    profile_lines = request.profile.summary_lines()
    user = SALARY_SYNTHESIS_USER.format(
        profile_block="\n".join(profile_lines) if profile_lines else NO_PROFILE,
        job_title=request.job_title,
        company=request.company,
        location=request.location or "Not specified",
        posted_salary=request.posted_salary or "Not specified",
        currency=detect_currency(request.location, request.profile.currency),
        job_description=request.job_description or "Not provided",
        requirements=request.requirements or "Not provided",
        salary_block=format_evidence(
            search.by_category(SourceCategory.SALARY_DATA), SALARY_EXCERPT_CHARS
        ),
        company_block=format_evidence(
            search.by_category(SourceCategory.COMPANY_INFO), CONTEXT_EXCERPT_CHARS
        ),
        market_block=format_evidence(
            search.by_category(SourceCategory.MARKET_TRENDS), CONTEXT_EXCERPT_CHARS
        ),
    )
    return SynthesisPrompt(system=SALARY_SYNTHESIS_SYSTEM, user=user)


class AnalysisSynthesizer(BaseStage):
    """Invokes the synthesis engine exactly once per analysis.

    Refuses to run without evidence: an empty aggregate raises
    InsufficientDataError before the engine is touched.
    """

    stage_name = "synthesizer"

    def __init__(self, settings: Settings, engine: SynthesisEngine) -> None:
        super().__init__(settings)
        self._engine = engine

    @traced_stage("synthesizing")
    async def run(self, state: AnalysisState) -> AnalysisState:
        if state.search is None:
            msg = "synthesizer ran before search"
            raise InsufficientDataError(msg)
        result = await self.synthesize(state.request, state.search)
        state.payload = result.payload
        state.model = result.model
        return state

    async def synthesize(
        self, request: AnalysisRequest, search: AggregatedSearch
    ) -> SynthesisResult:
        if search.is_empty:
            msg = (
                f"no search result survived filtering for {request.job_title!r} "
                f"at {request.company!r}"
            )
            raise InsufficientDataError(msg)

        prompt = build_prompt(request, search)
        self._log_start({"sources": search.source_count, "prompt_chars": len(prompt.user)})
        start = time.monotonic()

        result = await self._engine.complete(prompt)
        elapsed = time.monotonic() - start

        tracker = CostTracker(
            max_cost_usd=self.settings.max_cost_per_analysis_usd,
            warn_threshold_usd=self.settings.warn_cost_threshold_usd,
        )
        tracker.record_call(
            LLMCallMetrics(
                model=result.model,
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
                duration_seconds=elapsed,
            )
        )
        self._log_end(elapsed, tracker.summary())
        return result
