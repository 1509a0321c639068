"""Tagged result type distinguishing durable failures from transient ones."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from market_intel_core.exceptions import (
    ConfigurationError,
    InsufficientDataError,
    InvalidSynthesisError,
)
from market_intel_core.models.analysis import AnalysisResponse


class FailureKind(StrEnum):
    """Caller-facing failure classes."""

    INSUFFICIENT_DATA = "insufficient_data"  # durable: explain to the user
    INVALID_SYNTHESIS = "invalid_synthesis"  # durable for this payload
    CONFIGURATION = "configuration"  # durable until settings change
    TRANSIENT = "transient"  # offer a retry


def classify_failure(error: BaseException) -> FailureKind:
    """Map an exception onto the caller-facing failure kind."""
    if isinstance(error, InsufficientDataError):
        return FailureKind.INSUFFICIENT_DATA
    if isinstance(error, InvalidSynthesisError):
        return FailureKind.INVALID_SYNTHESIS
    if isinstance(error, ConfigurationError):
        return FailureKind.CONFIGURATION
    return FailureKind.TRANSIENT


class AnalysisSuccess(BaseModel):
    """The pipeline produced (or served) a validated report."""

    status: Literal["ok"] = "ok"
    response: AnalysisResponse = Field(description="The caller-facing response")


class AnalysisFailure(BaseModel):
    """The pipeline ended in the failed state."""

    status: Literal["failed"] = "failed"
    kind: FailureKind = Field(description="Failure class")
    error_type: str = Field(description="Originating exception class name")
    message: str = Field(description="Originating error message")
    final_state: str = Field(description="Workflow stage the failure occurred in")

    @property
    def retryable(self) -> bool:
        """Whether retrying later may succeed."""
        return self.kind == FailureKind.TRANSIENT


AnalysisOutcome = Annotated[AnalysisSuccess | AnalysisFailure, Field(discriminator="status")]
