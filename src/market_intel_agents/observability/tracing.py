"""Optional OpenTelemetry tracing for analyses and their stages."""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, Callable, Coroutine
from contextlib import asynccontextmanager
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import structlog

if TYPE_CHECKING:
    from market_intel_core.config.settings import Settings

logger = structlog.get_logger()

# Set by configure_tracing(); None means tracing is off and spans are skipped.
_tracer: Any = None

P = ParamSpec("P")
R = TypeVar("R")


def configure_tracing(settings: Settings) -> None:
    """Install a tracer provider for the configured exporter.

    OpenTelemetry is imported lazily so the default ``none`` exporter never
    loads it.
    """
    global _tracer

    if settings.otel_exporter == "none":
        _tracer = None
        return

    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.otel_service_name})
    )
    if settings.otel_exporter == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    else:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint))
        )

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("market-intel")
    logger.info("tracing_configured", exporter=settings.otel_exporter)


def disable_tracing() -> None:
    """Turn span creation off (used by tests)."""
    global _tracer
    _tracer = None


def set_tracer(tracer: Any) -> None:
    """Install an explicit tracer, e.g. one backed by an in-memory exporter."""
    global _tracer
    _tracer = tracer


def traced_stage(
    stage_name: str,
) -> Callable[[Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]]:
    """Wrap a stage coroutine in a child span; a no-op while tracing is off."""

    def decorator(
        fn: Callable[P, Coroutine[Any, Any, R]],
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        @wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            if _tracer is None:
                return await fn(*args, **kwargs)

            with _tracer.start_as_current_span(f"stage.{stage_name}") as span:
                span.set_attribute("stage.name", stage_name)
                started = time.monotonic()
                try:
                    result = await fn(*args, **kwargs)
                except Exception as exc:
                    span.set_attribute("stage.status", "error")
                    span.set_attribute("stage.error_type", type(exc).__name__)
                    raise
                else:
                    span.set_attribute("stage.status", "ok")
                    return result
                finally:
                    span.set_attribute(
                        "stage.duration_seconds", round(time.monotonic() - started, 3)
                    )

        return wrapper

    return decorator


@asynccontextmanager
async def trace_analysis(analysis_id: str) -> AsyncGenerator[Any, None]:
    """Root span for one analysis; yields None while tracing is off."""
    if _tracer is None:
        yield None
        return

    with _tracer.start_as_current_span("analysis.run") as span:
        span.set_attribute("analysis.id", analysis_id)
        yield span
