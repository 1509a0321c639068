"""Custom exception hierarchy for the market-intelligence pipeline."""

from __future__ import annotations


class MarketIntelError(Exception):
    """Base exception for all market-intel errors."""

    retryable: bool = True


class ConfigurationError(MarketIntelError):
    """Raised when a provider or backend is misconfigured."""

    retryable = False


class ExternalSourceUnavailableError(MarketIntelError):
    """Raised when a location data source cannot be reached or returns an HTTP error."""


class ParseFailureError(MarketIntelError):
    """Raised when a source response does not match the expected patterns."""


class InsufficientDataError(MarketIntelError):
    """Raised when no public data clears the quality bar for this input.

    Durable: retrying immediately with the same input will not help.
    """

    retryable = False


class InvalidSynthesisError(MarketIntelError):
    """Raised when a synthesis payload violates hard numeric invariants."""

    retryable = False


class CacheCorruptionError(MarketIntelError):
    """Raised when a stored cache payload cannot be deserialized."""


class SearchProviderError(MarketIntelError):
    """Raised when a search call fails after all retry attempts."""


class SynthesisEngineError(MarketIntelError):
    """Raised when the synthesis engine call fails or times out."""


class CostLimitExceededError(MarketIntelError):
    """Raised when the estimated cost of an analysis exceeds the configured limit."""
