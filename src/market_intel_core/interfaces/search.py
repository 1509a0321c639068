"""Abstract search provider interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class RawSearchHit:
    """A single unfiltered hit as returned by a provider."""

    title: str
    url: str
    content: str
    score: float | None = None


@runtime_checkable
class SearchProvider(Protocol):
    """Abstract interface for web search providers."""

    async def search(
        self,
        query: str,
        domain_hints: list[str] | None = None,
        max_results: int = 5,
    ) -> list[RawSearchHit]:
        """Perform a web search and return raw hits."""
        ...
