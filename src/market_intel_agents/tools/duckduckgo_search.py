"""Web search provider using DuckDuckGo (no API key required)."""

from __future__ import annotations

import asyncio

import structlog

from market_intel_core.interfaces.search import RawSearchHit

logger = structlog.get_logger()


def with_site_filter(query: str, domain_hints: list[str] | None) -> str:
    """Append a ``(site:a OR site:b)`` clause for the hinted domains."""
    if not domain_hints:
        return query
    sites = " OR ".join(f"site:{domain}" for domain in domain_hints)
    return f"{query} ({sites})"


class DuckDuckGoSearchProvider:
    """Free web search via the ``ddgs`` library.

    DuckDuckGo reports no relevance score, so hits carry ``score=None`` and
    the aggregator applies its default relevance.
    """

    async def search(
        self,
        query: str,
        domain_hints: list[str] | None = None,
        max_results: int = 5,
    ) -> list[RawSearchHit]:
        """Perform a web search via DuckDuckGo and return raw hits."""
        from ddgs import DDGS

        full_query = with_site_filter(query, domain_hints)

        def _search() -> list[RawSearchHit]:
            with DDGS() as ddgs:
                raw = list(ddgs.text(full_query, max_results=max_results))
            return [
                RawSearchHit(
                    title=item.get("title") or "",
                    url=item.get("href") or "",
                    content=item.get("body") or "",
                    score=None,
                )
                for item in raw
            ]

        hits = await asyncio.to_thread(_search)
        logger.debug("duckduckgo_search_done", query=full_query, hits=len(hits))
        return hits
