"""Redis implementation of CacheStore.

Each entry is a hash holding the payload and its write timestamp. A sorted
set scores every cache key by that timestamp, which gives the range index
the staleness sweep needs. Writes and sweeps run inside optimistic
WATCH/MULTI transactions so payload and timestamp always change together.
"""

import logging

import redis

from ticket_cache.config import get_redis_client, settings
from ticket_cache.entities import CacheEntryEntity
from ticket_cache.errors import StorageError

logger = logging.getLogger(__name__)


def _to_str(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisCacheRepository:
    """Redis implementation of the CacheStore protocol.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Layout:
    - ``{prefix}:entry:{key}``: hash with ``payload`` and ``cached_at``
    - ``{prefix}:cached_at``: sorted set, member = key, score = cached_at
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
            key_prefix: Prefix for every Redis key this repository owns.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._index_key = f"{self._prefix}:cached_at"

    @classmethod
    def create(cls, key_prefix: str | None = None) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            key_prefix: Redis key prefix. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(key_prefix=key_prefix)

    def _entry_key(self, key: str) -> str:
        return f"{self._prefix}:entry:{key}"

    def get(self, key: str) -> CacheEntryEntity | None:
        """Look up the entry for a key.

        Args:
            key: The cache key

        Returns:
            The entry if present, None otherwise

        Raises:
            StorageError: If Redis cannot be read
        """
        try:
            payload, cached_at = self._client.hmget(self._entry_key(key), ["payload", "cached_at"])
        except redis.RedisError as e:
            raise StorageError(f"Failed to read cache entry {key!r}: {e}") from e

        if payload is None or cached_at is None:
            return None

        return CacheEntryEntity(key=key, payload=_to_str(payload), cached_at=float(cached_at))

    def put(self, key: str, payload: str, timestamp: float) -> None:
        """Upsert the entry for a key in one transaction.

        Args:
            key: The cache key
            payload: Serialized upstream response
            timestamp: Unix timestamp of the write

        Raises:
            StorageError: If the transaction fails
        """
        entry_key = self._entry_key(key)

        def _upsert(pipe: redis.client.Pipeline) -> None:
            existing = pipe.hget(entry_key, "cached_at")
            stored_at = timestamp
            if existing is not None:
                stored_at = max(timestamp, float(existing))

            pipe.multi()
            pipe.hset(entry_key, mapping={"payload": payload, "cached_at": repr(stored_at)})
            pipe.zadd(self._index_key, {key: stored_at})

        try:
            self._client.transaction(_upsert, entry_key)
        except redis.RedisError as e:
            raise StorageError(f"Failed to write cache entry {key!r}: {e}") from e

    def sweep_older_than(self, cutoff: float) -> int:
        """Delete all entries cached strictly before ``cutoff``.

        Candidates come from the timestamp index; each one is re-checked
        under WATCH so an entry rewritten mid-sweep is kept.

        Args:
            cutoff: Unix timestamp

        Returns:
            Number of entries deleted

        Raises:
            StorageError: If Redis fails during the sweep
        """
        try:
            candidates = self._client.zrangebyscore(self._index_key, "-inf", f"({cutoff!r}")
            removed = 0
            for member in candidates:
                removed += self._delete_if_older(_to_str(member), cutoff)
        except redis.RedisError as e:
            raise StorageError(f"Failed to sweep cache entries: {e}") from e

        if removed:
            logger.info("Swept %d cache entries older than %.3f", removed, cutoff)
        return removed

    def _delete_if_older(self, key: str, cutoff: float) -> int:
        entry_key = self._entry_key(key)

        def _delete(pipe: redis.client.Pipeline) -> int:
            cached_at = pipe.hget(entry_key, "cached_at")
            if cached_at is not None and float(cached_at) >= cutoff:
                return 0

            pipe.multi()
            pipe.delete(entry_key)
            pipe.zrem(self._index_key, key)
            # A dangling index member (no hash) is cleaned up but not counted
            return 0 if cached_at is None else 1

        return self._client.transaction(_delete, entry_key, value_from_callable=True)

    def count_all(self) -> int:
        """Count total entries in the cache.

        Returns:
            Total number of cached entries
        """
        try:
            count: int = self._client.zcard(self._index_key)  # type: ignore[assignment]
        except redis.RedisError as e:
            raise StorageError(f"Failed to count cache entries: {e}") from e
        return count

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            result = self._client.ping()
            return bool(result)
        except redis.RedisError:
            return False

    def get_stats(self) -> dict:
        """Get repository statistics.

        Returns:
            Dictionary with stats
        """
        return {
            "backend": "redis",
            "key_prefix": self._prefix,
            "total_entries": self.count_all(),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
