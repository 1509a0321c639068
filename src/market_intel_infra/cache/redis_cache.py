"""Redis-backed analysis cache store."""

from __future__ import annotations

from datetime import datetime, timedelta

from redis.asyncio import Redis

from market_intel_core.exceptions import CacheCorruptionError
from market_intel_core.models.cache import CacheRecord, as_utc

_KEY_PREFIX = "analysis"
_REQUESTER_INDEX_PREFIX = "analysis_requester"

# Keep expired hashes around briefly so get() can report them as expired
_EXPIRY_GRACE = timedelta(hours=1)

_REQUIRED_FIELDS = (
    "input_hash",
    "payload",
    "confidence",
    "created_at",
    "updated_at",
    "expires_at",
    "format_version",
)

# KEYS[1] hash; ARGV: input_hash, updated_at of the record read, last_accessed_at.
# Never creates the hash: a record deleted or replaced since the read is left alone.
_TOUCH_LUA = """
local fields = redis.call('HMGET', KEYS[1], 'input_hash', 'updated_at')
if fields[1] ~= ARGV[1] or fields[2] ~= ARGV[2] then
    return false
end
local count = redis.call('HINCRBY', KEYS[1], 'access_count', 1)
redis.call('HSET', KEYS[1], 'last_accessed_at', ARGV[3])
return count
"""

# KEYS[1] hash; ARGV[1] updated_at the caller saw.
_DELETE_IF_UNCHANGED_LUA = """
if redis.call('HGET', KEYS[1], 'updated_at') == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


def _decode(value: object) -> str:
    """Redis may hand back bytes or str depending on decode_responses."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _stamp(value: datetime) -> str:
    """Stored string form of a timestamp."""
    return as_utc(value).isoformat()


class RedisAnalysisCacheStore:
    """AnalysisCacheStore backed by one Redis hash per (subject, requester) pair.

    Hits and conditional deletes run as Lua scripts, so each is one
    server-side step and a concurrent delete or upsert can never leave a
    partial hash behind.
    """

    def __init__(self, redis: Redis) -> None:  # type: ignore[type-arg]
        """Initialize with a redis-py asyncio client."""
        self._redis = redis
        self._touch_script = redis.register_script(_TOUCH_LUA)
        self._delete_script = redis.register_script(_DELETE_IF_UNCHANGED_LUA)

    @staticmethod
    def _key(subject_id: str, requester_id: str) -> str:
        """Hash key for a pair."""
        return f"{_KEY_PREFIX}:{subject_id}:{requester_id}"

    @staticmethod
    def _requester_key(requester_id: str) -> str:
        """Set of subject ids cached for one requester."""
        return f"{_REQUESTER_INDEX_PREFIX}:{requester_id}"

    async def fetch(self, subject_id: str, requester_id: str) -> CacheRecord | None:
        """Read the hash for a pair; a hash missing fields is CacheCorruptionError."""
        raw = await self._redis.hgetall(self._key(subject_id, requester_id))
        if not raw:
            return None
        data = {_decode(k): _decode(v) for k, v in raw.items()}
        missing = [name for name in _REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise CacheCorruptionError(f"cache hash lacks {', '.join(missing)}")
        last_accessed = data.get("last_accessed_at") or None
        try:
            return CacheRecord(
                subject_id=subject_id,
                requester_id=requester_id,
                input_hash=data["input_hash"],
                payload=data["payload"],
                confidence=float(data["confidence"]),
                created_at=as_utc(datetime.fromisoformat(data["created_at"])),
                updated_at=as_utc(datetime.fromisoformat(data["updated_at"])),
                expires_at=as_utc(datetime.fromisoformat(data["expires_at"])),
                last_accessed_at=(
                    as_utc(datetime.fromisoformat(last_accessed)) if last_accessed else None
                ),
                access_count=int(data.get("access_count") or "0"),
                format_version=data["format_version"],
            )
        except ValueError as e:
            raise CacheCorruptionError(f"cache hash failed to decode: {e}") from e

    async def touch(
        self, subject_id: str, requester_id: str, input_hash: str, now: datetime
    ) -> CacheRecord | None:
        """Record a hit on the record as read, in one scripted step."""
        record = await self.fetch(subject_id, requester_id)
        if record is None or record.input_hash != input_hash or record.is_expired(now):
            return None
        count = await self._touch_script(
            keys=[self._key(subject_id, requester_id)],
            args=[input_hash, _stamp(record.updated_at), _stamp(now)],
        )
        if count is None:
            return None
        return record.model_copy(
            update={"access_count": int(count), "last_accessed_at": as_utc(now)}
        )

    async def upsert(self, record: CacheRecord) -> None:
        """Replace the hash for the pair in one MULTI/EXEC transaction."""
        key = self._key(record.subject_id, record.requester_id)
        mapping = {
            "input_hash": record.input_hash,
            "payload": record.payload,
            "confidence": repr(record.confidence),
            "created_at": _stamp(record.created_at),
            "updated_at": _stamp(record.updated_at),
            "expires_at": _stamp(record.expires_at),
            "last_accessed_at": (
                as_utc(record.last_accessed_at).isoformat() if record.last_accessed_at else ""
            ),
            "access_count": str(record.access_count),
            "format_version": record.format_version,
        }
        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(key)
        pipe.hset(key, mapping=mapping)
        pipe.expireat(key, as_utc(record.expires_at) + _EXPIRY_GRACE)
        pipe.sadd(self._requester_key(record.requester_id), record.subject_id)
        await pipe.execute()

    async def delete(
        self, subject_id: str, requester_id: str, if_updated_at: datetime | None = None
    ) -> None:
        """Delete the hash for a pair, or only the version written at ``if_updated_at``."""
        key = self._key(subject_id, requester_id)
        if if_updated_at is None:
            await self._redis.delete(key)
        elif not await self._delete_script(keys=[key], args=[_stamp(if_updated_at)]):
            return
        await self._redis.srem(self._requester_key(requester_id), subject_id)

    async def delete_for_requester(self, requester_id: str) -> int:
        """Delete every hash indexed under one requester."""
        index_key = self._requester_key(requester_id)
        subjects = await self._redis.smembers(index_key)
        keys = [self._key(_decode(s), requester_id) for s in subjects]
        removed = int(await self._redis.delete(*keys)) if keys else 0
        await self._redis.delete(index_key)
        return removed

    async def purge_expired(self, now: datetime) -> int:
        """Delete hashes already past expires_at (Redis TTL covers the rest)."""
        removed = 0
        async for raw_key in self._redis.scan_iter(match=f"{_KEY_PREFIX}:*"):
            key = _decode(raw_key)
            expires_raw = await self._redis.hget(key, "expires_at")
            if expires_raw is None:
                continue
            if as_utc(datetime.fromisoformat(_decode(expires_raw))) < as_utc(now):
                removed += int(await self._redis.delete(key))
        return removed

    async def aclose(self) -> None:
        """Close the client and its connection pool."""
        await self._redis.aclose()
