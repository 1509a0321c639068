"""Token usage accounting and the per-analysis cost guardrail."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from market_intel_core.constants import TOKEN_PRICES
from market_intel_core.exceptions import CostLimitExceededError

logger = structlog.get_logger()


@dataclass
class LLMCallMetrics:
    """Usage of one synthesis call."""

    model: str
    input_tokens: int
    output_tokens: int
    duration_seconds: float
    stage: str = "synthesis"

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def cost_usd(self) -> float:
        """Price of the call; unknown models cost 0."""
        prices = TOKEN_PRICES.get(self.model)
        if not prices:
            return 0.0
        return (
            self.input_tokens * prices["input"] + self.output_tokens * prices["output"]
        ) / 1_000_000


@dataclass
class CostTracker:
    """Accumulates call metrics for one analysis and enforces the cost limit."""

    max_cost_usd: float
    warn_threshold_usd: float
    calls: list[LLMCallMetrics] = field(default_factory=list)

    @property
    def total_cost_usd(self) -> float:
        return sum(call.cost_usd for call in self.calls)

    @property
    def total_tokens(self) -> int:
        return sum(call.total_tokens for call in self.calls)

    def record_call(self, metrics: LLMCallMetrics) -> None:
        """Record a call; raises CostLimitExceededError once the limit is passed."""
        self.calls.append(metrics)
        total = self.total_cost_usd

        if total > self.max_cost_usd:
            raise CostLimitExceededError(
                f"Analysis cost ${total:.4f} exceeds limit ${self.max_cost_usd:.2f}"
            )
        if total > self.warn_threshold_usd:
            logger.warning(
                "cost_warning",
                current_cost=round(total, 4),
                threshold=self.warn_threshold_usd,
                limit=self.max_cost_usd,
            )

    def summary(self) -> dict[str, object]:
        """Aggregated usage for structured logging."""
        cost_by_model: dict[str, float] = {}
        for call in self.calls:
            cost_by_model[call.model] = cost_by_model.get(call.model, 0.0) + call.cost_usd
        return {
            "total_calls": len(self.calls),
            "total_tokens": self.total_tokens,
            "cost_by_model": cost_by_model,
            "total_cost_usd": round(self.total_cost_usd, 6),
        }


def extract_token_usage(response: object) -> tuple[int, int]:
    """Input/output token counts from an instructor response, (0, 0) if unavailable.

    Instructor keeps the raw Anthropic message on ``_raw_response``.
    """
    usage = getattr(getattr(response, "_raw_response", None), "usage", None)
    if usage is None:
        return (0, 0)
    return (int(getattr(usage, "input_tokens", 0)), int(getattr(usage, "output_tokens", 0)))
