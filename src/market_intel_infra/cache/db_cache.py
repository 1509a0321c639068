"""Database-backed analysis cache store with atomic upsert and access accounting."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_intel_core.models.cache import CacheRecord, as_utc
from market_intel_infra.db.models import AnalysisCacheModel

_UPSERT_COLUMNS = (
    "input_hash",
    "payload",
    "confidence",
    "created_at",
    "updated_at",
    "expires_at",
    "last_accessed_at",
    "access_count",
    "format_version",
)


def _naive(value: datetime | None) -> datetime | None:
    """Convert to naive UTC for storage."""
    if value is None:
        return None
    return as_utc(value).astimezone(UTC).replace(tzinfo=None)


def _to_record(model: AnalysisCacheModel) -> CacheRecord:
    """Rebuild a CacheRecord from a row, restoring UTC tzinfo."""
    return CacheRecord(
        subject_id=model.subject_id,
        requester_id=model.requester_id,
        input_hash=model.input_hash,
        payload=model.payload,
        confidence=model.confidence,
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
        expires_at=as_utc(model.expires_at),
        last_accessed_at=as_utc(model.last_accessed_at) if model.last_accessed_at else None,
        access_count=model.access_count,
        format_version=model.format_version,
    )


def _pair(subject_id: str, requester_id: str) -> tuple[object, object]:
    """WHERE clauses selecting one (subject, requester) row."""
    return (
        AnalysisCacheModel.subject_id == subject_id,
        AnalysisCacheModel.requester_id == requester_id,
    )


class SQLAnalysisCacheStore:
    """AnalysisCacheStore backed by the application's database.

    Each operation runs in its own session so concurrent requests never share
    one. Upserts use the dialect's ``INSERT ... ON CONFLICT DO UPDATE`` and
    hits increment ``access_count`` in a single UPDATE statement, so neither
    path loses writes under concurrency.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize with an async session factory."""
        self._session_factory = session_factory

    async def fetch(self, subject_id: str, requester_id: str) -> CacheRecord | None:
        """Read the record for a pair without touching access accounting."""
        async with self._session_factory() as session:
            return await self._select(session, subject_id, requester_id)

    async def touch(
        self, subject_id: str, requester_id: str, input_hash: str, now: datetime
    ) -> CacheRecord | None:
        """Atomically record a hit on a live record whose hash matches."""
        stored_now = _naive(now)
        stmt = (
            update(AnalysisCacheModel)
            .where(
                *_pair(subject_id, requester_id),
                AnalysisCacheModel.input_hash == input_hash,
                AnalysisCacheModel.expires_at >= stored_now,
            )
            .values(
                access_count=AnalysisCacheModel.access_count + 1,
                last_accessed_at=stored_now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount == 0:  # type: ignore[attr-defined]
                return None
            return await self._select(session, subject_id, requester_id)

    async def upsert(self, record: CacheRecord) -> None:
        """Insert the record or replace the existing one for the pair."""
        values: dict[str, object] = {
            "subject_id": record.subject_id,
            "requester_id": record.requester_id,
            "input_hash": record.input_hash,
            "payload": record.payload,
            "confidence": record.confidence,
            "created_at": _naive(record.created_at),
            "updated_at": _naive(record.updated_at),
            "expires_at": _naive(record.expires_at),
            "last_accessed_at": _naive(record.last_accessed_at),
            "access_count": record.access_count,
            "format_version": record.format_version,
        }
        async with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            insert_fn = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = insert_fn(AnalysisCacheModel).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["subject_id", "requester_id"],
                set_={name: stmt.excluded[name] for name in _UPSERT_COLUMNS},
            )
            await session.execute(stmt)
            await session.commit()

    async def delete(
        self, subject_id: str, requester_id: str, if_updated_at: datetime | None = None
    ) -> None:
        """Delete the record for a pair; missing rows are a no-op."""
        async with self._session_factory() as session:
            stmt = delete(AnalysisCacheModel).where(*_pair(subject_id, requester_id))
            if if_updated_at is not None:
                stmt = stmt.where(AnalysisCacheModel.updated_at == _naive(if_updated_at))
            await session.execute(stmt)
            await session.commit()

    async def delete_for_requester(self, requester_id: str) -> int:
        """Delete every record belonging to one requester."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AnalysisCacheModel).where(AnalysisCacheModel.requester_id == requester_id)
            )
            await session.commit()
            return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def purge_expired(self, now: datetime) -> int:
        """Delete records whose expires_at is in the past."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AnalysisCacheModel).where(AnalysisCacheModel.expires_at < _naive(now))
            )
            await session.commit()
            return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def aclose(self) -> None:
        """No-op; the engine is disposed by its owner."""

    @staticmethod
    async def _select(
        session: AsyncSession, subject_id: str, requester_id: str
    ) -> CacheRecord | None:
        """Select and convert the row for a pair."""
        stmt = select(AnalysisCacheModel).where(*_pair(subject_id, requester_id))
        result = await session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_record(model) if model else None
