"""Shared HTTP plumbing for cost-of-living source adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from market_intel_agents.tools.fetch_queue import RateLimitedFetchQueue
from market_intel_agents.tools.retry import RetryPolicy
from market_intel_core.exceptions import ExternalSourceUnavailableError, ParseFailureError
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet

logger = structlog.get_logger()

# Transport failures only; an HTTP error status is an answer, not a glitch
TRANSPORT_RETRY = RetryPolicy(
    max_attempts=2, base_delay=1.0, max_delay=4.0, retry_on=(httpx.TransportError,)
)


class HttpLocationSource(ABC):
    """A location source whose every GET goes through the shared fetch queue.

    Each retry attempt is queued separately, so retries respect the global
    spacing guarantee too.

    Anything a response does to the parser surfaces as ParseFailureError, so
    the resolver can move on to the next source.
    """

    name: str = "base"
    attribution: str = ""

    def __init__(
        self,
        queue: RateLimitedFetchQueue,
        user_agent: str,
        timeout_seconds: float = 15.0,
        retry_policy: RetryPolicy = TRANSPORT_RETRY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with the shared queue and an identifying User-Agent."""
        self._queue = queue
        self._user_agent = user_agent
        self._timeout = timeout_seconds
        self._retry = retry_policy
        self._transport = transport

    async def fetch(self, query: LocationQuery) -> ScrapedMetricSet:
        """Fetch and parse metrics for one location."""
        try:
            return await self._fetch(query)
        except (ValueError, TypeError, KeyError, AttributeError, IndexError) as e:
            raise ParseFailureError(
                f"{self.name}: unexpected response shape: {type(e).__name__}: {e}"
            ) from e

    @abstractmethod
    async def _fetch(self, query: LocationQuery) -> ScrapedMetricSet:
        ...

    async def _get(self, url: str, accept: str = "text/html") -> httpx.Response:
        """One queued GET, retried on transport errors; HTTP errors are not retried."""

        async def _request() -> httpx.Response:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent, "Accept": accept},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                return await client.get(url)

        async def _queued() -> httpx.Response:
            return await self._queue.submit(_request, label=f"{self.name}:{url}")

        try:
            response = await self._retry.call(_queued)
        except httpx.HTTPError as e:
            raise ExternalSourceUnavailableError(f"{self.name}: {url} unreachable: {e}") from e

        if response.status_code >= 400:
            raise ExternalSourceUnavailableError(
                f"{self.name}: HTTP {response.status_code} for {url}"
            )
        logger.debug("location_source_fetched", source=self.name, url=url)
        return response

    async def _get_text(self, url: str) -> str:
        return (await self._get(url)).text

    async def _get_json(self, url: str) -> dict[str, Any]:
        response = await self._get(url, accept="application/json")
        try:
            data = response.json()
        except ValueError as e:
            raise ParseFailureError(f"{self.name}: invalid JSON from {url}") from e
        if not isinstance(data, dict):
            raise ParseFailureError(f"{self.name}: expected a JSON object from {url}")
        return data

    def _metric_set(self, query: LocationQuery, **values: Any) -> ScrapedMetricSet:
        """Build a metric set keyed on the query; rejects a non-positive overall index."""
        index = values.get("cost_of_living_index")
        if index is None or index <= 0:
            raise ParseFailureError(f"{self.name}: no usable cost of living index")
        try:
            return ScrapedMetricSet(
                location_key=query.key,
                city=query.city,
                country=query.country,
                state=query.state,
                source=self.name,
                **values,
            )
        except ValidationError as e:
            raise ParseFailureError(f"{self.name}: values out of range: {e}") from e


def parse_number(raw: str | None) -> float | None:
    """Parse '1,234.5' style numbers; None when absent or malformed."""
    if raw is None:
        return None
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None
