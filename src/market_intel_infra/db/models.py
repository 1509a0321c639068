"""SQLAlchemy ORM table models."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo, the form stored in DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class LocationMetricsModel(Base):
    """Latest cost-of-living metrics per normalized location key."""

    __tablename__ = "location_metrics"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    location_key: Mapped[str] = mapped_column(
        String(512), unique=True, nullable=False, index=True
    )
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost_of_living_index: Mapped[float] = mapped_column(Float, nullable=False)
    rent_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    groceries_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    restaurant_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    transport_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    utilities_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_net_salary_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    source: Mapped[str] = mapped_column(String(1024), nullable=False)
    attribution: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    data_point_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    captured_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow_naive
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive
    )


class AnalysisCacheModel(Base):
    """One live synthesized report per (subject_id, requester_id)."""

    __tablename__ = "analysis_cache"
    __table_args__ = (
        UniqueConstraint("subject_id", "requester_id", name="uq_analysis_cache_pair"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    input_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    format_version: Mapped[str] = mapped_column(String(20), nullable=False)
