"""Tests for Settings configuration."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from market_intel_core.config.settings import Settings
from market_intel_core.constants import REPORT_FORMAT_VERSION


@pytest.mark.unit
class TestSettings:
    """Test Settings validation and defaults."""

    def test_default_settings(self) -> None:
        """Settings load without any API key and carry documented defaults."""
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.db_backend == "sqlite"
        assert s.cache_backend == "db"
        assert s.analysis_cache_ttl_hours == 24
        assert s.location_fetch_delay_seconds == 10.0
        assert s.location_cache_max_age_days == 30
        assert s.location_confidence_threshold == 0.5
        assert s.cache_format_version == REPORT_FORMAT_VERSION
        assert s.anthropic_api_key is None

    def test_env_prefix(self) -> None:
        """MI_ prefixed environment variables override defaults."""
        env = {"MI_ANALYSIS_CACHE_TTL_HOURS": "6", "MI_SEARCH_PROVIDER": "duckduckgo"}
        with patch.dict(os.environ, env, clear=False):
            s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.analysis_cache_ttl_hours == 6
        assert s.search_provider == "duckduckgo"

    def test_postgres_backend_sets_database_url(self) -> None:
        """When db_backend=postgres, database_url is set from postgres_url."""
        with patch.dict(os.environ, {"MI_DB_BACKEND": "postgres"}, clear=False):
            s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.database_url == s.postgres_url
        assert "asyncpg" in s.database_url

    def test_pool_size_must_be_positive(self) -> None:
        """A Postgres pool needs at least one connection."""
        with pytest.raises(ValidationError, match="db_pool_size"):
            Settings(db_pool_size=0, _env_file=None)  # type: ignore[call-arg]

    def test_secret_keys_are_masked(self) -> None:
        """API keys are SecretStr and never printed in repr."""
        s = Settings(anthropic_api_key="sk-ant-secret", _env_file=None)  # type: ignore[call-arg]
        assert s.anthropic_api_key is not None
        assert s.anthropic_api_key.get_secret_value() == "sk-ant-secret"
        assert "sk-ant-secret" not in repr(s)

    def test_confidence_threshold_out_of_range(self) -> None:
        """A threshold of 1.0 or more could never be exceeded and is rejected."""
        with pytest.raises(ValidationError, match="location_confidence_threshold"):
            Settings(location_confidence_threshold=1.0, _env_file=None)  # type: ignore[call-arg]

    def test_search_attempts_must_be_positive(self) -> None:
        """Zero attempts is rejected."""
        with pytest.raises(ValidationError, match="search_max_attempts"):
            Settings(search_max_attempts=0, _env_file=None)  # type: ignore[call-arg]

    def test_invalid_search_provider(self) -> None:
        """Unknown search providers fail validation."""
        with pytest.raises(ValidationError):
            Settings(search_provider="bing", _env_file=None)  # type: ignore[call-arg]
