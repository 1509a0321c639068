"""Abstract synthesis engine interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from market_intel_core.models.analysis import SynthesisPayload


@dataclass
class SynthesisPrompt:
    """A single-shot prompt: system instructions plus one user message."""

    system: str
    user: str


@dataclass
class SynthesisResult:
    """Structured payload plus the token usage of the call that produced it."""

    payload: SynthesisPayload
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class SynthesisEngine(Protocol):
    """Single-shot completion returning a structured payload."""

    async def complete(self, prompt: SynthesisPrompt) -> SynthesisResult:
        """Run one completion; no streaming, no multi-turn state."""
        ...
