"""Abstract analysis-cache store interface."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from market_intel_core.models.cache import CacheRecord


@runtime_checkable
class AnalysisCacheStore(Protocol):
    """Key-value-like storage for CacheRecords keyed by (subject_id, requester_id)."""

    async def fetch(self, subject_id: str, requester_id: str) -> CacheRecord | None:
        """Read a record without touching access accounting."""
        ...

    async def touch(
        self, subject_id: str, requester_id: str, input_hash: str, now: datetime
    ) -> CacheRecord | None:
        """Atomically bump access_count / last_accessed_at for a live, matching record.

        Returns the updated record, or None when no live record matches input_hash.
        """
        ...

    async def upsert(self, record: CacheRecord) -> None:
        """Insert or replace the record for the pair."""
        ...

    async def delete(
        self, subject_id: str, requester_id: str, if_updated_at: datetime | None = None
    ) -> None:
        """Remove the record for the pair (no-op if absent).

        With ``if_updated_at`` only the version written at that instant is
        removed, so a record replaced since it was read survives.
        """
        ...

    async def delete_for_requester(self, requester_id: str) -> int:
        """Remove every record of one requester; returns the count removed."""
        ...

    async def purge_expired(self, now: datetime) -> int:
        """Remove records past expires_at; returns the count removed."""
        ...

    async def aclose(self) -> None:
        """Release connections the store owns."""
        ...
