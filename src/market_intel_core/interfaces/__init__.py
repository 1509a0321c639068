"""Public interface re-exports for market_intel_core."""

from market_intel_core.interfaces.cache import AnalysisCacheStore
from market_intel_core.interfaces.location import LocationMetricsStore, LocationSource
from market_intel_core.interfaces.search import RawSearchHit, SearchProvider
from market_intel_core.interfaces.synthesis import (
    SynthesisEngine,
    SynthesisPrompt,
    SynthesisResult,
)

__all__ = [
    "AnalysisCacheStore",
    "LocationMetricsStore",
    "LocationSource",
    "RawSearchHit",
    "SearchProvider",
    "SynthesisEngine",
    "SynthesisPrompt",
    "SynthesisResult",
]
