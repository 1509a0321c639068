"""Cost-of-living source adapters, in default priority order."""

from market_intel_agents.tools.location_sources.base import HttpLocationSource
from market_intel_agents.tools.location_sources.expatistan import ExpatistanSource
from market_intel_agents.tools.location_sources.numbeo import NumbeoSource
from market_intel_agents.tools.location_sources.teleport import TeleportSource

DEFAULT_SOURCE_ORDER: tuple[type[HttpLocationSource], ...] = (
    NumbeoSource,
    ExpatistanSource,
    TeleportSource,
)

__all__ = [
    "DEFAULT_SOURCE_ORDER",
    "ExpatistanSource",
    "HttpLocationSource",
    "NumbeoSource",
    "TeleportSource",
]
