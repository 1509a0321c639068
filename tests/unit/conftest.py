"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import MagicMock

import pytest

from market_intel_agents.observability.tracing import disable_tracing
from market_intel_core.models.analysis import AnalysisRequest
from market_intel_core.state import AnalysisState
from tests.mocks.mock_factories import make_analysis_state, make_request
from tests.mocks.mock_settings import make_settings
from tests.mocks.mock_tools import FakeClock, InMemoryCacheStore


@pytest.fixture
def mock_settings() -> MagicMock:
    """Return a MagicMock Settings with sensible defaults."""
    return make_settings()


@pytest.fixture
def sample_request() -> AnalysisRequest:
    """Return a fully populated AnalysisRequest."""
    return make_request()


@pytest.fixture
def analysis_state() -> AnalysisState:
    """Return a fresh AnalysisState for the default request."""
    return make_analysis_state()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Return a manually advanced UTC clock."""
    return FakeClock()


@pytest.fixture
def memory_cache_store() -> InMemoryCacheStore:
    """Return an empty dict-backed analysis cache store."""
    return InMemoryCacheStore()


@pytest.fixture(autouse=True)
def _no_tracing() -> Generator[None, None, None]:
    """Keep spans off unless a test installs a tracer itself."""
    disable_tracing()
    yield
    disable_tracing()
