"""Cache record model for persisted analysis reports."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from market_intel_core.constants import REPORT_FORMAT_VERSION


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from storage as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class CacheRecord(BaseModel):
    """One live report per (subject_id, requester_id) pair."""

    subject_id: str = Field(description="Job identity (key part)")
    requester_id: str = Field(description="Requester identity (key part)")
    input_hash: str = Field(description="Fingerprint of the inputs that produced the payload")
    payload: str = Field(description="Serialized AnalysisReport JSON")
    confidence: float = Field(ge=0.0, le=1.0, description="Report confidence")
    created_at: datetime = Field(description="When this report was first stored")
    updated_at: datetime = Field(description="When this record was last written")
    expires_at: datetime = Field(description="After this instant the record is a miss")
    last_accessed_at: datetime | None = Field(default=None, description="Last cache hit")
    access_count: int = Field(default=0, ge=0, description="Number of cache hits")
    format_version: str = Field(default=REPORT_FORMAT_VERSION, description="Payload schema")

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once now is past expires_at."""
        current = now or datetime.now(UTC)
        return as_utc(current) > as_utc(self.expires_at)
