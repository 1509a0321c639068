"""Observability: structured logging, tracing, and cost tracking."""

from market_intel_agents.observability.cost_tracker import (
    CostTracker,
    LLMCallMetrics,
    extract_token_usage,
)
from market_intel_agents.observability.logging import (
    bind_analysis_context,
    clear_analysis_context,
    configure_logging,
)
from market_intel_agents.observability.tracing import (
    configure_tracing,
    disable_tracing,
    set_tracer,
    trace_analysis,
    traced_stage,
)

__all__ = [
    "CostTracker",
    "LLMCallMetrics",
    "bind_analysis_context",
    "clear_analysis_context",
    "configure_logging",
    "configure_tracing",
    "disable_tracing",
    "extract_token_usage",
    "set_tracer",
    "trace_analysis",
    "traced_stage",
]
