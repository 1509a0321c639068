"""Web search provider backed by the Tavily API."""

from __future__ import annotations

import asyncio

import structlog
from tavily import TavilyClient

from market_intel_core.interfaces.search import RawSearchHit

logger = structlog.get_logger()


class TavilySearchProvider:
    """SearchProvider using Tavily; domain hints become ``include_domains``."""

    def __init__(self, api_key: str) -> None:
        """Initialize with Tavily API key."""
        self._client = TavilyClient(api_key=api_key)

    async def search(
        self,
        query: str,
        domain_hints: list[str] | None = None,
        max_results: int = 5,
    ) -> list[RawSearchHit]:
        """Run the (blocking) Tavily client in a worker thread."""

        def _search() -> list[RawSearchHit]:
            kwargs: dict[str, object] = {"query": query, "max_results": max_results}
            if domain_hints:
                kwargs["include_domains"] = domain_hints
            response = self._client.search(**kwargs)
            return [
                RawSearchHit(
                    title=item.get("title") or "",
                    url=item.get("url") or "",
                    content=item.get("content") or "",
                    score=item.get("score"),
                )
                for item in response.get("results", [])
            ]

        hits = await asyncio.to_thread(_search)
        logger.debug("tavily_search_done", query=query, hits=len(hits))
        return hits
