"""Shared constants for the market-intelligence pipeline."""

from __future__ import annotations

# Prompt versions: increment when prompt templates change
SALARY_SYNTHESIS_PROMPT_VERSION = "v1"

# Bump when the serialized AnalysisReport shape changes; older cache rows become misses
REPORT_FORMAT_VERSION = "1"

# LLM token pricing (USD per 1M tokens)
TOKEN_PRICES: dict[str, dict[str, float]] = {
    "claude-haiku-4-5-20251001": {"input": 0.80, "output": 4.00},
    "claude-sonnet-4-5-20250514": {"input": 3.00, "output": 15.00},
}

# Location metrics
DEFAULT_FETCH_DELAY_SECONDS = 10.0
LOCATION_CACHE_MAX_AGE_DAYS = 30
LOCATION_CONFIDENCE_THRESHOLD = 0.5

# Recomputed report confidence is clamped into this band
CONFIDENCE_FLOOR = 0.3
CONFIDENCE_CEILING = 0.9
DEFAULT_RELEVANCE = 0.5

# Excerpt lengths embedded in the synthesis prompt
SALARY_EXCERPT_CHARS = 300
CONTEXT_EXCERPT_CHARS = 250

ALLOWED_URL_SCHEMES = ("http", "https")

# Text an upstream provider emits when it fabricates an answer instead of searching
PLACEHOLDER_MARKERS = (
    "based on ai knowledge",
    "as an ai language model",
    "as an ai model",
    "lorem ipsum",
    "no results found",
    "placeholder content",
    "[placeholder]",
    "example.com",
)

# Domain hints per search category
SEARCH_DOMAIN_HINTS: dict[str, list[str]] = {
    "salary_data": [
        "glassdoor.com",
        "levels.fyi",
        "payscale.com",
        "indeed.com",
        "salary.com",
    ],
    "company_info": ["glassdoor.com", "indeed.com", "comparably.com", "linkedin.com"],
    "market_trends": ["bls.gov", "linkedin.com", "indeed.com", "hiringlab.org"],
}

CAREER_LEVEL_SEARCH_TERMS: dict[str, str] = {
    "entry": "entry level junior",
    "junior": "junior",
    "mid": "mid level",
    "senior": "senior",
    "lead": "lead senior",
    "principal": "principal staff",
    "executive": "director VP executive",
}

# Substring of a lower-cased location -> ISO currency
LOCATION_CURRENCIES: dict[str, str] = {
    "korea": "KRW",
    "seoul": "KRW",
    "japan": "JPY",
    "tokyo": "JPY",
    "united kingdom": "GBP",
    "london": "GBP",
    "germany": "EUR",
    "france": "EUR",
    "spain": "EUR",
    "italy": "EUR",
    "netherlands": "EUR",
    "canada": "CAD",
    "toronto": "CAD",
    "australia": "AUD",
    "sydney": "AUD",
    "singapore": "SGD",
    "india": "INR",
    "mumbai": "INR",
    "bangalore": "INR",
    "china": "CNY",
    "beijing": "CNY",
    "shanghai": "CNY",
    "hong kong": "HKD",
    "mexico": "MXN",
    "brazil": "BRL",
    "switzerland": "CHF",
    "zurich": "CHF",
    "sweden": "SEK",
    "stockholm": "SEK",
}
