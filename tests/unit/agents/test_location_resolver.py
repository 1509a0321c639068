"""Tests for the multi-source cost-of-living resolver."""

from __future__ import annotations

from datetime import timedelta
import json
from unittest.mock import MagicMock

import httpx
import pytest

from market_intel_agents.agents.location_resolver import MultiSourceLocationDataResolver
from market_intel_agents.tools.fetch_queue import RateLimitedFetchQueue
from market_intel_agents.tools.location_sources.teleport import TeleportSource
from market_intel_core.exceptions import ParseFailureError
from market_intel_core.models.location import LocationQuery
from tests.mocks.mock_factories import make_location_query, make_metric_set
from tests.mocks.mock_tools import (
    FakeClock,
    FakeLocationSource,
    InMemoryLocationStore,
    http_handler,
    unavailable_source,
)


def _resolver(
    settings: MagicMock,
    store: InMemoryLocationStore,
    sources: list[FakeLocationSource],
    clock: FakeClock,
) -> MultiSourceLocationDataResolver:
    return MultiSourceLocationDataResolver(settings, store, sources, clock=clock)


@pytest.mark.unit
class TestResolve:
    """Fresh cache, ordered fallback, stale degradation."""

    async def test_fresh_cache_short_circuits(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        fresh = make_metric_set(captured_at=fake_clock() - timedelta(days=3))
        store = InMemoryLocationStore([fresh])
        source = FakeLocationSource("numbeo_scrape")

        result = await _resolver(mock_settings, store, [source], fake_clock).resolve(
            make_location_query()
        )

        assert result == fresh
        assert source.call_count == 0

    async def test_key_ignores_case_and_whitespace(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        store = InMemoryLocationStore([make_metric_set(captured_at=fake_clock())])
        source = FakeLocationSource("numbeo_scrape")
        result = await _resolver(mock_settings, store, [source], fake_clock).resolve(
            LocationQuery(city="  BERLIN ", country="germany")
        )
        assert result is not None
        assert source.call_count == 0

    async def test_falls_back_to_next_source(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        """Scenario: the first source is down, the second answers."""
        store = InMemoryLocationStore()
        first = unavailable_source("numbeo_scrape")
        second = FakeLocationSource("expatistan_scrape", confidence=0.7, cost_index=61.0)
        third = FakeLocationSource("teleport_api")

        result = await _resolver(
            mock_settings, store, [first, second, third], fake_clock
        ).resolve(make_location_query(city="Berlin"))

        assert result is not None
        assert result.cost_of_living_index == 61.0
        assert result.source.startswith("expatistan_scrape_with_attribution - ")
        assert result.attribution == second.attribution
        assert (first.call_count, second.call_count, third.call_count) == (1, 1, 0)
        assert store.upserts == 1

    async def test_sources_receive_normalized_query(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        source = FakeLocationSource("numbeo_scrape")
        query = LocationQuery(city="New York", state="NY", country="United States")
        result = await _resolver(
            mock_settings, InMemoryLocationStore(), [source], fake_clock
        ).resolve(query)

        assert source.queries[0].city == "new york"
        assert source.queries[0].state == "ny"
        # stored record keeps the caller's spelling
        assert result is not None
        assert result.city == "New York"
        assert result.location_key == query.key

    async def test_parse_failure_moves_on(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        broken = FakeLocationSource("numbeo_scrape", error=ParseFailureError("captcha"))
        good = FakeLocationSource("teleport_api")
        result = await _resolver(
            mock_settings, InMemoryLocationStore(), [broken, good], fake_clock
        ).resolve(make_location_query())
        assert result is not None
        assert result.source.startswith("teleport_api")

    async def test_threshold_is_exclusive(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        """A result exactly at the threshold is rejected."""
        at_threshold = FakeLocationSource("numbeo_scrape", confidence=0.5)
        above = FakeLocationSource("expatistan_scrape", confidence=0.51)
        result = await _resolver(
            mock_settings, InMemoryLocationStore(), [at_threshold, above], fake_clock
        ).resolve(make_location_query())
        assert result is not None
        assert result.confidence == 0.51

    async def test_below_threshold_everywhere_returns_none(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        store = InMemoryLocationStore()
        sources = [
            FakeLocationSource("numbeo_scrape", confidence=0.25),
            FakeLocationSource("expatistan_scrape", confidence=0.4),
        ]
        result = await _resolver(mock_settings, store, sources, fake_clock).resolve(
            make_location_query()
        )
        assert result is None
        assert store.upserts == 0

    async def test_stale_data_returned_when_sources_fail(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        """Scenario: degraded answer beats no answer."""
        stale = make_metric_set(captured_at=fake_clock() - timedelta(days=45))
        store = InMemoryLocationStore([stale])
        sources = [unavailable_source("numbeo_scrape"), unavailable_source("teleport_api")]

        result = await _resolver(mock_settings, store, sources, fake_clock).resolve(
            make_location_query()
        )

        assert result == stale
        assert all(s.call_count == 1 for s in sources)

    async def test_stale_data_is_refreshed_when_possible(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        stale = make_metric_set(captured_at=fake_clock() - timedelta(days=30))
        store = InMemoryLocationStore([stale])
        source = FakeLocationSource("numbeo_scrape", cost_index=66.0)

        result = await _resolver(mock_settings, store, [source], fake_clock).resolve(
            make_location_query()
        )

        assert result is not None
        assert result.cost_of_living_index == 66.0
        assert store.rows[stale.location_key].cost_of_living_index == 66.0

    async def test_nothing_anywhere_returns_none(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        result = await _resolver(
            mock_settings, InMemoryLocationStore(), [unavailable_source("a")], fake_clock
        ).resolve(make_location_query())
        assert result is None


@pytest.mark.unit
class TestSeedLocations:
    """Sequential warm-up over several locations."""

    async def test_one_failure_does_not_stop_the_rest(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        class _PickySource(FakeLocationSource):
            async def fetch(self, query: LocationQuery):  # noqa: ANN202
                if query.city == "atlantis":
                    self.queries.append(query)
                    raise ParseFailureError("no such city")
                return await super().fetch(query)

        source = _PickySource("numbeo_scrape")
        queries = [
            make_location_query(city="Berlin"),
            make_location_query(city="Atlantis", country="Ocean"),
            make_location_query(city="Munich"),
        ]
        seeded = await _resolver(
            mock_settings, InMemoryLocationStore(), [source], fake_clock
        ).seed_locations(queries)

        assert list(seeded) == [q.key for q in queries]
        assert seeded[queries[1].key] is None
        assert seeded[queries[0].key] is not None
        assert seeded[queries[2].key] is not None
        assert [q.city for q in source.queries] == ["berlin", "atlantis", "munich"]


@pytest.mark.unit
class TestThresholdFallback:
    """Low-confidence first source, acceptable second, third never asked."""

    async def test_second_source_wins(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        sources = [
            FakeLocationSource("numbeo_scrape", confidence=0.3),
            FakeLocationSource("expatistan_scrape", confidence=0.7, cost_index=58.0),
            FakeLocationSource("teleport_api"),
        ]
        result = await _resolver(
            mock_settings, InMemoryLocationStore(), sources, fake_clock
        ).resolve(LocationQuery(city="Springfield", country="United States"))

        assert result is not None
        assert result.cost_of_living_index == 58.0
        assert result.confidence == 0.7
        assert [s.call_count for s in sources] == [1, 1, 0]


@pytest.mark.unit
class TestMalformedSourceResponses:
    """A source that chokes on its own response never aborts the resolve."""

    async def test_out_of_range_teleport_score_falls_through(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        search = {
            "_embedded": {
                "city:search-results": [
                    {"_links": {"city:item": {"href": "https://api.teleport.org/api/cities/1/"}}}
                ]
            }
        }
        city = {"_links": {"city:urban_area": {"href": "https://api.teleport.org/ua/berlin/"}}}
        scores = {
            "categories": [
                {"name": "Cost of Living", "score_out_of_10": 6.2},
                {"name": "Housing", "score_out_of_10": -1},
            ]
        }
        handler = http_handler(
            {
                "https://api.teleport.org/api/cities/?search": (200, json.dumps(search)),
                "https://api.teleport.org/api/cities/1/": (200, json.dumps(city)),
                "https://api.teleport.org/ua/berlin/scores/": (200, json.dumps(scores)),
            }
        )
        fallback = FakeLocationSource("numbeo_scrape", cost_index=64.0)

        async with RateLimitedFetchQueue(min_delay=0.0) as queue:
            teleport = TeleportSource(
                queue=queue,
                user_agent="MarketIntelBot/test",
                transport=httpx.MockTransport(handler),
            )
            result = await _resolver(
                mock_settings,
                InMemoryLocationStore(),
                [teleport, fallback],  # type: ignore[list-item]
                fake_clock,
            ).resolve(make_location_query())

        assert result is not None
        assert result.cost_of_living_index == 64.0
        assert fallback.call_count == 1

    async def test_malformed_only_source_yields_stale_row(
        self, mock_settings: MagicMock, fake_clock: FakeClock
    ) -> None:
        stale = make_metric_set(captured_at=fake_clock() - timedelta(days=60))
        handler = http_handler(
            {
                "https://api.teleport.org/api/cities/?search": (
                    200,
                    json.dumps({"_embedded": {"city:search-results": ["berlin"]}}),
                )
            }
        )

        async with RateLimitedFetchQueue(min_delay=0.0) as queue:
            teleport = TeleportSource(
                queue=queue,
                user_agent="MarketIntelBot/test",
                transport=httpx.MockTransport(handler),
            )
            result = await _resolver(
                mock_settings,
                InMemoryLocationStore([stale]),
                [teleport],  # type: ignore[list-item]
                fake_clock,
            ).resolve(make_location_query())

        assert result == stale
