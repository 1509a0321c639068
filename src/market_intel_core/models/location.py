"""Location query and cost-of-living metric models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _norm(value: str | None) -> str:
    """Lower-case and collapse whitespace; None becomes empty."""
    if value is None:
        return ""
    return " ".join(value.split()).lower()


def split_location(text: str | None) -> tuple[str | None, str | None, str | None]:
    """Split "City, State, Country" style text into (city, state, country).

    Two parts are read as city and country; a single part is the country.
    """
    parts = [p.strip() for p in (text or "").split(",") if p.strip()]
    if len(parts) >= 3:
        return parts[0], parts[1], parts[-1]
    if len(parts) == 2:
        return parts[0], None, parts[1]
    if len(parts) == 1:
        return None, None, parts[0]
    return None, None, None


class LocationQuery(BaseModel):
    """A location to resolve cost-of-living metrics for."""

    city: str = Field(min_length=1, description="City name")
    country: str = Field(description="Country name")
    state: str | None = Field(default=None, description="State/region, if applicable")
    is_remote: bool = Field(default=False, description="Whether the role is remote")

    def normalized(self) -> LocationQuery:
        """Return a copy with every text field lower-cased and trimmed."""
        return LocationQuery(
            city=_norm(self.city),
            country=_norm(self.country),
            state=_norm(self.state) or None,
            is_remote=self.is_remote,
        )

    @property
    def key(self) -> str:
        """Stable lookup key; identical for inputs differing only in case/whitespace."""
        return "|".join(
            [
                _norm(self.city),
                _norm(self.state),
                _norm(self.country),
                "remote" if self.is_remote else "onsite",
            ]
        )


class ScrapedMetricSet(BaseModel):
    """Cost-of-living metrics extracted from one external source."""

    location_key: str = Field(description="Normalized LocationQuery.key")
    city: str = Field(description="City as queried")
    country: str = Field(description="Country as queried")
    state: str | None = Field(default=None, description="State/region")
    cost_of_living_index: float = Field(
        gt=0, allow_inf_nan=False, description="Overall cost-of-living index (NYC = 100)"
    )
    rent_index: float | None = Field(default=None, ge=0, description="Rent index")
    groceries_index: float | None = Field(default=None, ge=0, description="Groceries index")
    restaurant_index: float | None = Field(default=None, ge=0, description="Restaurant index")
    transport_index: float | None = Field(default=None, ge=0, description="Transport index")
    utilities_index: float | None = Field(default=None, ge=0, description="Utilities index")
    avg_net_salary_usd: float | None = Field(
        default=None, ge=0, description="Average annual net salary in USD, if reported"
    )
    source: str = Field(description="Source tag, with attribution embedded once persisted")
    attribution: str | None = Field(
        default=None, description="Human-readable credit for the originating site"
    )
    confidence: float = Field(
        ge=0.0, le=1.0, allow_inf_nan=False, description="Confidence in data quality"
    )
    data_point_count: int | None = Field(
        default=None, ge=0, description="Sample size reported by the source"
    )
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the data was fetched"
    )

    def with_attribution(self, note: str) -> ScrapedMetricSet:
        """Return a copy whose source string embeds the attribution note."""
        if self.attribution is not None:
            return self
        return self.model_copy(
            update={
                "source": f"{self.source}_with_attribution - {note}",
                "attribution": note,
            }
        )

    def age_days(self, now: datetime | None = None) -> float:
        """Age of the capture in days."""
        current = now or datetime.now(UTC)
        captured = self.captured_at
        if captured.tzinfo is None:
            captured = captured.replace(tzinfo=UTC)
        return (current - captured).total_seconds() / 86400
