"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings

# Third-party loggers that flood INFO with per-request lines
_NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "anthropic")


def _shared_processors() -> list[structlog.types.Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(settings: Settings) -> None:
    """Route structlog and stdlib logging through one renderer.

    Call once at process start; JSON output when ``log_format == "json"``,
    coloured console output otherwise.
    """
    shared = _shared_processors()
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    level = resolve_level(settings.log_level)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_analysis_context(analysis_id: str, subject_id: str, requester_id: str) -> None:
    """Attach request-scoped identifiers to every log line of this analysis."""
    bind_contextvars(analysis_id=analysis_id, subject_id=subject_id, requester_id=requester_id)


def clear_analysis_context() -> None:
    """Drop all request-scoped identifiers."""
    clear_contextvars()


def resolve_level(level_name: str) -> int:
    """Map a level name onto a logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(level_name.strip().upper())
    return level if isinstance(level, int) else logging.INFO
