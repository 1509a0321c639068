"""Analysis workflow state: mutable state passed through the orchestrator."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from market_intel_core.models.analysis import (
    AnalysisReport,
    AnalysisRequest,
    SynthesisPayload,
)
from market_intel_core.models.search import AggregatedSearch


class AnalysisStage(StrEnum):
    """Orchestrator state machine stages."""

    IDLE = "idle"
    CHECKING_CACHE = "checking_cache"
    CACHED_HIT = "cached_hit"
    SEARCHING = "searching"
    SYNTHESIZING = "synthesizing"
    VALIDATING = "validating"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STAGES = frozenset({AnalysisStage.COMPLETE, AnalysisStage.FAILED})

ALLOWED_TRANSITIONS: dict[AnalysisStage, frozenset[AnalysisStage]] = {
    AnalysisStage.IDLE: frozenset({AnalysisStage.CHECKING_CACHE, AnalysisStage.SEARCHING}),
    AnalysisStage.CHECKING_CACHE: frozenset(
        {AnalysisStage.CACHED_HIT, AnalysisStage.SEARCHING, AnalysisStage.FAILED}
    ),
    AnalysisStage.CACHED_HIT: frozenset({AnalysisStage.COMPLETE}),
    AnalysisStage.SEARCHING: frozenset({AnalysisStage.SYNTHESIZING, AnalysisStage.FAILED}),
    AnalysisStage.SYNTHESIZING: frozenset({AnalysisStage.VALIDATING, AnalysisStage.FAILED}),
    AnalysisStage.VALIDATING: frozenset({AnalysisStage.COMPLETE, AnalysisStage.FAILED}),
    AnalysisStage.COMPLETE: frozenset(),
    AnalysisStage.FAILED: frozenset(),
}


@dataclass
class StageTransition:
    """One recorded state change."""

    from_stage: AnalysisStage
    to_stage: AnalysisStage
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class AnalysisState:
    """Request-scoped state for one run of the orchestrator."""

    request: AnalysisRequest
    input_hash: str
    analysis_id: str = field(default_factory=lambda: f"sal_{uuid4().hex[:16]}")
    stage: AnalysisStage = AnalysisStage.IDLE
    transitions: list[StageTransition] = field(default_factory=list)
    started_monotonic: float = field(default_factory=time.monotonic)

    search: AggregatedSearch | None = None
    payload: SynthesisPayload | None = None
    model: str | None = None
    report: AnalysisReport | None = None
    cached: bool = False
    error: BaseException | None = None

    def advance(self, stage: AnalysisStage) -> None:
        """Move to the next stage; illegal transitions are programming errors."""
        if stage not in ALLOWED_TRANSITIONS[self.stage]:
            msg = f"illegal transition {self.stage} -> {stage}"
            raise ValueError(msg)
        self.transitions.append(StageTransition(from_stage=self.stage, to_stage=stage))
        self.stage = stage

    def fail(self, error: BaseException) -> None:
        """Record the error and move to FAILED from any non-terminal stage."""
        self.error = error
        if self.stage in TERMINAL_STAGES:
            return
        self.transitions.append(
            StageTransition(from_stage=self.stage, to_stage=AnalysisStage.FAILED)
        )
        self.stage = AnalysisStage.FAILED

    @property
    def elapsed_ms(self) -> int:
        """Milliseconds since the state was created."""
        return int((time.monotonic() - self.started_monotonic) * 1000)

    @property
    def path(self) -> list[str]:
        """Visited stages in order, starting from idle."""
        if not self.transitions:
            return [self.stage.value]
        return [self.transitions[0].from_stage.value] + [
            t.to_stage.value for t in self.transitions
        ]
