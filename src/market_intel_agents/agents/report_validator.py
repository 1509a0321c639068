"""Validation gate between an untrusted synthesis payload and a report."""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime

import structlog

from market_intel_agents.agents.base import BaseStage
from market_intel_agents.agents.synthesizer import detect_currency
from market_intel_agents.observability.tracing import traced_stage
from market_intel_core.constants import (
    CONFIDENCE_CEILING,
    CONFIDENCE_FLOOR,
    SALARY_SYNTHESIS_PROMPT_VERSION,
)
from market_intel_core.exceptions import InvalidSynthesisError
from market_intel_core.models.analysis import (
    AnalysisReport,
    AnalysisRequest,
    EdgeCaseNotes,
    MarketPosition,
    ReportMetadata,
    SalaryRange,
    SourceCitation,
    SynthesisPayload,
)
from market_intel_core.models.search import AggregatedSearch
from market_intel_core.state import AnalysisState

logger = structlog.get_logger()

_CURRENCY_CODE = re.compile(r"^[A-Za-z]{3}$")
SHORT_DESCRIPTION_CHARS = 100


def recompute_confidence(source_count: int, average_relevance: float) -> float:
    """clamp(floor, ceiling, (sources / 10) * average relevance)."""
    raw = (source_count / 10) * average_relevance
    return min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, raw))


def _checked_amount(name: str, value: object) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidSynthesisError(f"{name} is missing or not a number: {value!r}")
    if not math.isfinite(value):
        raise InvalidSynthesisError(f"{name} is not finite: {value!r}")
    if value < 0:
        raise InvalidSynthesisError(f"{name} is negative: {value!r}")
    return float(value)


def detect_edge_cases(request: AnalysisRequest) -> EdgeCaseNotes:
    """Remote role, missing posted salary and thin description, and the resulting scope."""
    is_remote = request.is_remote
    has_salary = bool((request.posted_salary or "").strip())
    description = request.job_description.strip()
    adjustments: list[str] = []
    limitations: list[str] = []

    if is_remote:
        adjustments.append("Remote position: using global salary data")
        limitations.append("Location-specific cost adjustments may not apply")
    if not has_salary:
        adjustments.append("No posted salary: relying on market estimates")
        limitations.append("Cannot validate against company-specific compensation")
    if len(description) < SHORT_DESCRIPTION_CHARS:
        adjustments.append("Limited job description: using role-based analysis")
        limitations.append("Skills gap analysis may be incomplete")

    if is_remote and has_salary and description:
        scope = "full"
    elif (not is_remote and has_salary) or (is_remote and description):
        scope = "limited"
    else:
        scope = "basic"

    return EdgeCaseNotes(
        is_remote_position=is_remote,
        has_salary_info=has_salary,
        confidence_adjustments=adjustments,
        data_limitations=limitations,
        analysis_scope=scope,
    )


class ReportValidator(BaseStage):
    """Turns a payload into an AnalysisReport or raises InvalidSynthesisError.

    Range defects are never repaired. The only substitution allowed is
    replacing a missing or out-of-range self-reported confidence with one
    computed from the aggregator's own results.
    """

    stage_name = "report_validator"

    @traced_stage("validating")
    async def run(self, state: AnalysisState) -> AnalysisState:
        if state.payload is None or state.search is None:
            msg = "nothing to validate"
            raise InvalidSynthesisError(msg)
        state.report = self.validate(
            state.payload,
            state.search,
            state.request,
            analysis_id=state.analysis_id,
            processing_time_ms=state.elapsed_ms,
            model=state.model,
        )
        return state

    def validate(
        self,
        payload: SynthesisPayload,
        search: AggregatedSearch,
        request: AnalysisRequest,
        analysis_id: str,
        processing_time_ms: int,
        model: str | None = None,
    ) -> AnalysisReport:
        low = _checked_amount("salary_min", payload.salary_min)
        high = _checked_amount("salary_max", payload.salary_max)
        median = _checked_amount("salary_median", payload.salary_median)
        if not low <= median <= high:
            raise InvalidSynthesisError(
                f"salary range out of order: min={low} median={median} max={high}"
            )

        position_raw = (payload.market_position or "").strip().lower()
        try:
            position = MarketPosition(position_raw)
        except ValueError as e:
            raise InvalidSynthesisError(
                f"unknown market position: {payload.market_position!r}"
            ) from e

        recomputed = not payload.confidence_is_valid
        if recomputed:
            confidence = recompute_confidence(search.source_count, search.average_relevance)
            logger.warning(
                "synthesis_confidence_recomputed",
                reported=repr(payload.confidence),
                recomputed=round(confidence, 3),
                sources=search.source_count,
            )
        else:
            confidence = float(payload.confidence)  # type: ignore[arg-type]

        detected = detect_currency(request.location, request.profile.currency)
        currency = (payload.currency or "").strip()
        currency = currency.upper() if _CURRENCY_CODE.match(currency) else detected

        report = AnalysisReport(
            salary_range=SalaryRange(
                min=low, max=high, median=median, currency=currency, confidence=confidence
            ),
            market_position=position,
            personalized_insights=payload.insights,
            recommendations=payload.recommendations,
            sources=[
                SourceCitation(
                    title=r.title, url=r.url, relevance=r.relevance, category=r.source_category
                )
                for r in search.results
            ],
            search_queries=list(search.queries.values()),
            profile_data_used=request.profile.data_used(),
            edge_cases=detect_edge_cases(request),
            metadata=ReportMetadata(
                analysis_id=analysis_id,
                timestamp=datetime.now(UTC),
                processing_time_ms=processing_time_ms,
                prompt_version=SALARY_SYNTHESIS_PROMPT_VERSION,
                model=model,
                confidence_recomputed=recomputed,
            ),
        )
        logger.info(
            "report_validated",
            market_position=position.value,
            confidence=round(confidence, 3),
            currency=currency,
        )
        return report
