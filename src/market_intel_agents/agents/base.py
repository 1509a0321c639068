"""Base class for the orchestrator's pipeline stages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

from market_intel_core.state import AnalysisState

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings

logger = structlog.get_logger()


class BaseStage(ABC):
    """A step of the analysis workflow operating on request-scoped state.

    Collaborators (search provider, synthesis engine, ...) are injected by
    the caller; stages never build their own clients.
    """

    stage_name: str = "base"

    def __init__(self, settings: Settings) -> None:
        """Initialize with settings."""
        self.settings = settings

    @abstractmethod
    async def run(self, state: AnalysisState) -> AnalysisState:
        """Execute the stage. Must be implemented by subclasses."""
        ...

    def _log_start(self, context: dict[str, object] | None = None) -> None:
        logger.info("stage_start", stage=self.stage_name, **(context or {}))

    def _log_end(self, duration: float, context: dict[str, object] | None = None) -> None:
        logger.info(
            "stage_end",
            stage=self.stage_name,
            duration_seconds=round(duration, 2),
            **(context or {}),
        )
