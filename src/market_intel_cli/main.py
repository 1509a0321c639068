"""CLI entrypoint using typer."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from market_intel_agents.observability import configure_logging, configure_tracing
from market_intel_agents.orchestrator.salary_intelligence import check_cached_report
from market_intel_agents.services import Services
from market_intel_core.config.settings import Settings
from market_intel_core.exceptions import ConfigurationError
from market_intel_core.models.analysis import AnalysisReport, AnalysisRequest
from market_intel_core.models.location import LocationQuery, ScrapedMetricSet
from market_intel_core.models.outcome import AnalysisFailure

app = typer.Typer(
    name="market-intel",
    help="Personalized salary and cost-of-living intelligence for job opportunities",
)
console = Console()
logger = structlog.get_logger()

T = TypeVar("T")

EXIT_TRANSIENT = 1
EXIT_DURABLE = 2


def _settings(verbose: bool) -> Settings:
    settings = Settings()  # type: ignore[call-arg]
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    configure_tracing(settings)
    return settings


def _load_request(path: Path, force_refresh: bool = False) -> AnalysisRequest:
    try:
        request = AnalysisRequest.model_validate_json(path.read_text())
    except ValidationError as e:
        console.print(f"[red]Invalid request file:[/red] {path}\n{e}")
        raise typer.Exit(code=EXIT_DURABLE) from e
    if force_refresh:
        request = request.model_copy(update={"force_refresh": True})
    return request


def _with_services(
    settings: Settings,
    fn: Callable[[Services], Awaitable[T]],
    *,
    init_tables: bool | None = None,
) -> T:
    """Run one coroutine against freshly built services, closing them afterwards.

    SQLite tables are created on demand unless told otherwise.
    """
    create_tables = settings.db_backend == "sqlite" if init_tables is None else init_tables

    async def _main() -> T:
        services = await Services.create(settings, init_tables=create_tables)
        try:
            return await fn(services)
        finally:
            await services.aclose()

    try:
        return asyncio.run(_main())
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=EXIT_DURABLE) from e


def _print_report(report: AnalysisReport, cached: bool, processing_time_ms: int) -> None:
    salary = report.salary_range
    header = "[cyan](cached)[/cyan] " if cached else ""
    console.print(
        f"{header}[bold]{salary.currency} {salary.min:,.0f} - {salary.max:,.0f}[/bold] "
        f"(median {salary.median:,.0f}, confidence {salary.confidence:.0%})"
    )
    console.print(f"  Market position: {report.market_position.value}")
    console.print(f"  Scope: {report.edge_cases.analysis_scope}")
    if report.metadata.confidence_recomputed:
        console.print("  [dim]Confidence recomputed from search results[/dim]")

    insights = report.personalized_insights
    if insights.matching_skills:
        console.print(f"  Matching skills: {', '.join(insights.matching_skills)}")
    if insights.missing_skills:
        console.print(f"  Missing skills: {', '.join(insights.missing_skills)}")

    recs = report.recommendations
    for title, items in (
        ("Negotiation", recs.negotiation_strategy),
        ("Action items", recs.action_items),
        ("Red flags", recs.red_flags),
    ):
        if items:
            console.print(f"\n[bold]{title}:[/bold]")
            for item in items:
                console.print(f"  - {item}")

    if report.sources:
        table = Table(title="Sources")
        table.add_column("Category")
        table.add_column("Relevance", justify="right")
        table.add_column("Title")
        for source in report.sources:
            table.add_row(source.category.value, f"{source.relevance:.0%}", source.title)
        console.print(table)
    console.print(f"[dim]{processing_time_ms} ms[/dim]")


def _print_metrics(metrics: ScrapedMetricSet) -> None:
    table = Table(title=f"{metrics.city}, {metrics.country}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for label, value in (
        ("Cost of living index", metrics.cost_of_living_index),
        ("Rent index", metrics.rent_index),
        ("Groceries index", metrics.groceries_index),
        ("Restaurant index", metrics.restaurant_index),
        ("Avg. net salary (USD/yr)", metrics.avg_net_salary_usd),
        ("Confidence", metrics.confidence),
    ):
        table.add_row(label, "n/a" if value is None else f"{value:,.2f}")
    console.print(table)
    if metrics.attribution:
        console.print(f"[dim]{metrics.attribution}[/dim]")


@app.command()
def analyze(
    request_file: Path = typer.Argument(..., help="AnalysisRequest JSON file", exists=True),
    force_refresh: bool = typer.Option(
        False, "--force-refresh", help="Skip the cache read (result is still cached)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the outcome as JSON"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Run the market-intelligence pipeline for one request."""
    settings = _settings(verbose)
    request = _load_request(request_file, force_refresh)

    outcome = _with_services(settings, lambda s: s.orchestrator.run(request))

    if as_json:
        console.print_json(outcome.model_dump_json())
    elif isinstance(outcome, AnalysisFailure):
        console.print(
            f"[red]Analysis failed[/red] ({outcome.kind.value}) "
            f"in {outcome.final_state}: {outcome.message}"
        )
    else:
        response = outcome.response
        _print_report(response.report, response.cached, response.processing_time_ms)

    if isinstance(outcome, AnalysisFailure):
        raise typer.Exit(code=EXIT_TRANSIENT if outcome.retryable else EXIT_DURABLE)


@app.command("cache-check")
def cache_check(
    request_file: Path = typer.Argument(..., help="AnalysisRequest JSON file", exists=True),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Report whether a live cached analysis exists; never searches or synthesizes."""
    settings = _settings(verbose)
    request = _load_request(request_file)

    result = _with_services(settings, lambda s: check_cached_report(s.cache, request))
    if result.report is None:
        console.print("[yellow]Not cached[/yellow]")
        return
    _print_report(result.report, cached=True, processing_time_ms=0)


@app.command()
def location(
    city: str = typer.Argument(..., help="City name"),
    country: str = typer.Option(..., "--country", help="Country name"),
    state: str | None = typer.Option(None, "--state", help="State or region"),
    remote: bool = typer.Option(False, "--remote", help="Resolve for a remote role"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Resolve cost-of-living metrics (stored data first, then public sources)."""
    settings = _settings(verbose)
    query = LocationQuery(city=city, country=country, state=state, is_remote=remote)

    metrics = _with_services(
        settings, lambda s: s.location_resolver.resolve(query)
    )
    if metrics is None:
        console.print(f"[yellow]No cost-of-living data available for {query.key}[/yellow]")
        raise typer.Exit(code=EXIT_DURABLE)
    _print_metrics(metrics)


@app.command("purge-cache")
def purge_cache(
    requester: str | None = typer.Option(
        None, "--requester", help="Drop every analysis of this requester instead"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Delete expired analysis records."""
    settings = _settings(verbose)

    async def _purge(services: Services) -> int:
        if requester:
            return await services.cache.invalidate_requester(requester)
        return await services.cache.purge_expired()

    removed = _with_services(settings, _purge)
    console.print(f"Removed {removed} cached analyses")


@app.command("init-db")
def init_database(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Create the database tables."""
    settings = _settings(verbose)

    async def _noop(services: Services) -> None:
        return None

    _with_services(settings, _noop, init_tables=True)
    console.print(f"[green]Tables created[/green] at {settings.database_url}")


@app.command()
def version() -> None:
    """Show version."""
    console.print("market-intel v0.1.0")


if __name__ == "__main__":
    app()
