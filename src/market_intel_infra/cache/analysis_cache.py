"""Backend-agnostic analysis cache: TTL, input-hash freshness, access accounting."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from pydantic import ValidationError

from market_intel_core.constants import REPORT_FORMAT_VERSION
from market_intel_core.exceptions import CacheCorruptionError
from market_intel_core.interfaces.cache import AnalysisCacheStore
from market_intel_core.models.analysis import AnalysisReport
from market_intel_core.models.cache import CacheRecord

logger = structlog.get_logger()


@dataclass
class CacheStats:
    """In-process counters for one AnalysisCache instance."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    hash_mismatches: int = 0
    corrupt: int = 0
    writes: int = 0

    @property
    def hit_rate(self) -> float:
        """Hits over lookups; 0.0 before the first lookup."""
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class AnalysisCache:
    """One live report per (subject_id, requester_id), keyed for freshness by input hash.

    A lookup is a hit only when a record exists, is not past ``expires_at``,
    carries the same input hash, and decodes under the current format version.
    Corrupt records are deleted and reported as a miss.
    """

    def __init__(
        self,
        store: AnalysisCacheStore,
        ttl: timedelta,
        format_version: str = REPORT_FORMAT_VERSION,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with a store, default TTL, and an optional clock."""
        self._store = store
        self._ttl = ttl
        self._format_version = format_version
        self._clock = clock or (lambda: datetime.now(UTC))
        self.stats = CacheStats()

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self._clock()

    async def get(
        self, subject_id: str, requester_id: str, input_hash: str
    ) -> CacheRecord | None:
        """Return the live record for the pair, recording the hit atomically."""
        now = self.now()
        try:
            record = await self._store.fetch(subject_id, requester_id)
        except CacheCorruptionError as e:
            await self._store.delete(subject_id, requester_id)
            self._record_corrupt(subject_id, e)
            return None
        if record is None:
            self.stats.misses += 1
            logger.debug("analysis_cache_miss", subject_id=subject_id, reason="absent")
            return None
        if record.is_expired(now):
            await self._store.delete(subject_id, requester_id, if_updated_at=record.updated_at)
            self.stats.misses += 1
            self.stats.expired += 1
            logger.info("analysis_cache_expired", subject_id=subject_id)
            return None
        if record.input_hash != input_hash:
            self.stats.misses += 1
            self.stats.hash_mismatches += 1
            logger.info("analysis_cache_input_changed", subject_id=subject_id)
            return None
        try:
            self.load_report(record)
        except CacheCorruptionError as e:
            await self._store.delete(subject_id, requester_id, if_updated_at=record.updated_at)
            self._record_corrupt(subject_id, e)
            return None

        touched = await self._store.touch(subject_id, requester_id, input_hash, now)
        if touched is None:
            # Replaced or expired between fetch and touch
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        logger.info(
            "analysis_cache_hit",
            subject_id=subject_id,
            access_count=touched.access_count,
        )
        return touched

    def _record_corrupt(self, subject_id: str, error: CacheCorruptionError) -> None:
        self.stats.misses += 1
        self.stats.corrupt += 1
        logger.warning("analysis_cache_corrupt", subject_id=subject_id, error=str(error))

    def load_report(self, record: CacheRecord) -> AnalysisReport:
        """Decode a record's payload; raises CacheCorruptionError on any defect."""
        if record.format_version != self._format_version:
            msg = (
                f"format version {record.format_version!r} != {self._format_version!r}"
            )
            raise CacheCorruptionError(msg)
        try:
            return AnalysisReport.model_validate_json(record.payload)
        except ValidationError as e:
            raise CacheCorruptionError(f"payload failed to decode: {e}") from e

    async def put(
        self,
        subject_id: str,
        requester_id: str,
        input_hash: str,
        payload: AnalysisReport | str,
        confidence: float,
        ttl: timedelta | None = None,
    ) -> CacheRecord:
        """Replace the record for the pair with a fresh report."""
        now = self.now()
        body = payload if isinstance(payload, str) else payload.model_dump_json()
        record = CacheRecord(
            subject_id=subject_id,
            requester_id=requester_id,
            input_hash=input_hash,
            payload=body,
            confidence=confidence,
            created_at=now,
            updated_at=now,
            expires_at=now + (ttl if ttl is not None else self._ttl),
            last_accessed_at=None,
            access_count=0,
            format_version=self._format_version,
        )
        await self._store.upsert(record)
        self.stats.writes += 1
        logger.info(
            "analysis_cache_write",
            subject_id=subject_id,
            expires_at=record.expires_at.isoformat(),
        )
        return record

    async def invalidate(self, subject_id: str, requester_id: str) -> None:
        """Drop the record for one pair."""
        await self._store.delete(subject_id, requester_id)
        logger.info("analysis_cache_invalidated", subject_id=subject_id)

    async def invalidate_requester(self, requester_id: str) -> int:
        """Drop every record of one requester (e.g. after a profile reset)."""
        removed = await self._store.delete_for_requester(requester_id)
        logger.info("analysis_cache_requester_invalidated", removed=removed)
        return removed

    async def purge_expired(self) -> int:
        """Delete all records past their expiry."""
        removed = await self._store.purge_expired(self.now())
        logger.info("analysis_cache_purged", removed=removed)
        return removed

    async def aclose(self) -> None:
        """Close the underlying store."""
        await self._store.aclose()
