"""Location metrics repository and the session-per-call store built on it."""

from __future__ import annotations

from datetime import UTC

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_intel_core.models.cache import as_utc
from market_intel_core.models.location import ScrapedMetricSet
from market_intel_infra.db.models import LocationMetricsModel

_METRIC_FIELDS = (
    "city",
    "country",
    "state",
    "cost_of_living_index",
    "rent_index",
    "groceries_index",
    "restaurant_index",
    "transport_index",
    "utilities_index",
    "avg_net_salary_usd",
    "source",
    "attribution",
    "confidence",
    "data_point_count",
)


def _to_model_values(metrics: ScrapedMetricSet) -> dict[str, object]:
    """Column values for a metric set; timestamps stored as naive UTC."""
    values: dict[str, object] = {name: getattr(metrics, name) for name in _METRIC_FIELDS}
    values["captured_at"] = as_utc(metrics.captured_at).astimezone(UTC).replace(tzinfo=None)
    return values


def _to_metric_set(model: LocationMetricsModel) -> ScrapedMetricSet:
    """Rebuild the domain model from a row."""
    data: dict[str, object] = {name: getattr(model, name) for name in _METRIC_FIELDS}
    return ScrapedMetricSet(
        location_key=model.location_key,
        captured_at=as_utc(model.captured_at),
        **data,  # type: ignore[arg-type]
    )


class LocationMetricsRepository:
    """CRUD operations for location metrics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize with an async session."""
        self._session = session

    async def get_model(self, location_key: str) -> LocationMetricsModel | None:
        """Retrieve the row for a normalized location key."""
        stmt = select(LocationMetricsModel).where(
            LocationMetricsModel.location_key == location_key
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_key(self, location_key: str) -> ScrapedMetricSet | None:
        """Retrieve metrics for a normalized location key."""
        model = await self.get_model(location_key)
        return _to_metric_set(model) if model else None

    async def upsert(self, metrics: ScrapedMetricSet) -> ScrapedMetricSet:
        """Create or supersede the row for metrics.location_key."""
        values = _to_model_values(metrics)
        existing = await self.get_model(metrics.location_key)
        if existing:
            for name, value in values.items():
                setattr(existing, name, value)
            await self._session.flush()
            return _to_metric_set(existing)
        model = LocationMetricsModel(location_key=metrics.location_key, **values)
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError:
            # A concurrent writer created the row first; supersede it instead.
            await self._session.rollback()
            return await self.upsert(metrics)
        return _to_metric_set(model)


class SQLLocationMetricsStore:
    """LocationMetricsStore that opens one session per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize with an async session factory."""
        self._session_factory = session_factory

    async def get_by_key(self, location_key: str) -> ScrapedMetricSet | None:
        """Return stored metrics for a key, regardless of age."""
        async with self._session_factory() as session:
            return await LocationMetricsRepository(session).get_by_key(location_key)

    async def upsert(self, metrics: ScrapedMetricSet) -> ScrapedMetricSet:
        """Persist metrics, superseding any prior record for the key."""
        async with self._session_factory() as session:
            stored = await LocationMetricsRepository(session).upsert(metrics)
            await session.commit()
            return stored
