"""Top-level state machine for one personalized market-intelligence analysis."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog

from market_intel_agents.agents.report_validator import ReportValidator
from market_intel_agents.agents.search_aggregator import SearchAggregator
from market_intel_agents.agents.synthesizer import AnalysisSynthesizer
from market_intel_agents.observability import (
    bind_analysis_context,
    clear_analysis_context,
    trace_analysis,
)
from market_intel_core.exceptions import (
    CacheCorruptionError,
    InsufficientDataError,
    InvalidSynthesisError,
    SynthesisEngineError,
)
from market_intel_core.fingerprint import compute_input_hash
from market_intel_core.models.analysis import (
    AnalysisReport,
    AnalysisRequest,
    AnalysisResponse,
    CacheCheckResult,
)
from market_intel_core.models.cache import CacheRecord
from market_intel_core.models.outcome import (
    AnalysisFailure,
    AnalysisOutcome,
    AnalysisSuccess,
    FailureKind,
    classify_failure,
)
from market_intel_core.state import AnalysisStage, AnalysisState

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings
    from market_intel_core.interfaces.search import SearchProvider
    from market_intel_core.interfaces.synthesis import SynthesisEngine
    from market_intel_infra.cache.analysis_cache import AnalysisCache

logger = structlog.get_logger()


async def check_cached_report(cache: AnalysisCache, request: AnalysisRequest) -> CacheCheckResult:
    """Cache-check-only mode; needs no search provider or synthesis engine."""
    record = await cache.get(
        request.subject_id, request.requester_id, compute_input_hash(request)
    )
    if record is None:
        return CacheCheckResult(cached=False)
    try:
        report = cache.load_report(record)
    except CacheCorruptionError:
        await cache.invalidate(request.subject_id, request.requester_id)
        return CacheCheckResult(cached=False)
    return CacheCheckResult(cached=True, report=report)


class SalaryIntelligenceOrchestrator:
    """idle -> checking_cache -> (cached_hit | searching) -> synthesizing -> validating.

    Ends in complete or failed. ``analyze`` raises the originating typed
    error; ``run`` wraps every pipeline error in an AnalysisFailure.
    """

    def __init__(
        self,
        settings: Settings,
        cache: AnalysisCache,
        aggregator: SearchAggregator,
        synthesizer: AnalysisSynthesizer,
        validator: ReportValidator,
    ) -> None:
        self.settings = settings
        self._cache = cache
        self._aggregator = aggregator
        self._synthesizer = synthesizer
        self._validator = validator

    @classmethod
    def from_components(
        cls,
        settings: Settings,
        cache: AnalysisCache,
        search_provider: SearchProvider,
        engine: SynthesisEngine,
    ) -> SalaryIntelligenceOrchestrator:
        """Wire the default stages around explicit collaborators."""
        return cls(
            settings=settings,
            cache=cache,
            aggregator=SearchAggregator(settings, search_provider),
            synthesizer=AnalysisSynthesizer(settings, engine),
            validator=ReportValidator(settings),
        )

    def new_state(self, request: AnalysisRequest) -> AnalysisState:
        return AnalysisState(request=request, input_hash=compute_input_hash(request))

    async def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        """Serve from cache or run the pipeline; raises on failure."""
        return await self._run_state(self.new_state(request))

    async def run(self, request: AnalysisRequest) -> AnalysisOutcome:
        """Like ``analyze`` but returns a tagged outcome instead of raising."""
        state = self.new_state(request)
        try:
            response = await self._run_state(state)
        except Exception as e:
            kind = classify_failure(e)
            return AnalysisFailure(
                kind=kind,
                error_type=type(e).__name__,
                message=str(e),
                final_state=self._failed_in(state).value,
            )
        return AnalysisSuccess(response=response)

    async def check_cache(self, request: AnalysisRequest) -> CacheCheckResult:
        """Cache-only lookup: hashes locally, never searches or synthesizes."""
        return await check_cached_report(self._cache, request)

    async def _run_state(self, state: AnalysisState) -> AnalysisResponse:
        request = state.request
        bind_analysis_context(state.analysis_id, request.subject_id, request.requester_id)
        try:
            async with trace_analysis(state.analysis_id) as span:
                try:
                    response = await self._execute(state)
                except Exception as e:
                    state.fail(e)
                    self._log_failure(state, e)
                    self._set_span_attrs(span, state, status="failed")
                    raise
                self._set_span_attrs(span, state, status="ok")
                return response
        finally:
            clear_analysis_context()

    async def _execute(self, state: AnalysisState) -> AnalysisResponse:
        request = state.request
        logger.info(
            "analysis_start",
            job_title=request.job_title,
            company=request.company,
            force_refresh=request.force_refresh,
        )

        if request.force_refresh:
            logger.info("analysis_cache_bypassed")
        else:
            self._advance(state, AnalysisStage.CHECKING_CACHE)
            record = await self._cache.get(
                request.subject_id, request.requester_id, state.input_hash
            )
            report = await self._load_cached(request, record) if record else None
            if report is not None:
                state.report = report
                state.cached = True
                self._advance(state, AnalysisStage.CACHED_HIT)
                self._advance(state, AnalysisStage.COMPLETE)
                return self._response(state, report)

        self._advance(state, AnalysisStage.SEARCHING)
        await self._aggregator.run(state)
        if state.search is None or state.search.is_empty:
            msg = "no search result survived filtering; synthesis not attempted"
            raise InsufficientDataError(msg)

        self._advance(state, AnalysisStage.SYNTHESIZING)
        timeout = self.settings.synthesis_timeout_seconds
        try:
            await asyncio.wait_for(self._synthesizer.run(state), timeout=timeout)
        except TimeoutError as e:
            msg = f"synthesis did not finish within {timeout:g}s"
            raise SynthesisEngineError(msg) from e

        self._advance(state, AnalysisStage.VALIDATING)
        await self._validator.run(state)
        report = state.report
        if report is None:
            msg = "validation produced no report"
            raise InvalidSynthesisError(msg)

        await self._cache.put(
            request.subject_id,
            request.requester_id,
            state.input_hash,
            report,
            report.salary_range.confidence,
            ttl=timedelta(hours=self.settings.analysis_cache_ttl_hours),
        )
        self._advance(state, AnalysisStage.COMPLETE)
        return self._response(state, report)

    async def _load_cached(
        self, request: AnalysisRequest, record: CacheRecord
    ) -> AnalysisReport | None:
        """Decode a hit; a payload that no longer decodes is dropped and treated as a miss."""
        try:
            return self._cache.load_report(record)
        except CacheCorruptionError as e:
            logger.warning("analysis_cache_corrupt", error=str(e))
            await self._cache.invalidate(request.subject_id, request.requester_id)
            return None

    @staticmethod
    def _response(state: AnalysisState, report: AnalysisReport) -> AnalysisResponse:
        response = AnalysisResponse(
            report=report,
            cached=state.cached,
            sources=report.sources,
            processing_time_ms=state.elapsed_ms,
        )
        logger.info(
            "analysis_complete",
            cached=state.cached,
            path=state.path,
            processing_time_ms=response.processing_time_ms,
            confidence=report.salary_range.confidence,
        )
        return response

    @staticmethod
    def _advance(state: AnalysisState, stage: AnalysisStage) -> None:
        previous = state.stage
        state.advance(stage)
        logger.info("analysis_state_changed", from_stage=previous.value, to_stage=stage.value)

    @staticmethod
    def _failed_in(state: AnalysisState) -> AnalysisStage:
        """The stage that was active when the analysis failed."""
        if state.stage == AnalysisStage.FAILED and state.transitions:
            return state.transitions[-1].from_stage
        return state.stage

    def _log_failure(self, state: AnalysisState, error: Exception) -> None:
        kind = classify_failure(error)
        log = logger.error if kind == FailureKind.TRANSIENT else logger.warning
        log(
            "analysis_failed",
            kind=kind.value,
            failed_in=self._failed_in(state).value,
            error_type=type(error).__name__,
            error=str(error),
            path=state.path,
        )

    @staticmethod
    def _set_span_attrs(span: Any, state: AnalysisState, status: str) -> None:
        if span is None:
            return
        span.set_attribute("analysis.status", status)
        span.set_attribute("analysis.cached", state.cached)
        span.set_attribute("analysis.final_stage", state.stage.value)
        if state.report is not None:
            span.set_attribute("analysis.confidence", state.report.salary_range.confidence)
