"""Cache storage protocol.

Defines the interface for any backend that keeps one timestamped payload per
cache key. The store is pure storage: freshness decisions belong to the
TTL policy and write decisions to the fetch coordinator.

Implementations can include:
- Redis (default)
- SQLite
- Any other store with atomic upserts and a timestamp index
"""

from typing import Protocol, runtime_checkable

from ticket_cache.entities import CacheEntryEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed.

    Example:
        ```python
        from ticket_cache.protocols import CacheStore

        store: CacheStore = RedisCacheRepository.create()
        store: CacheStore = SqliteCacheRepository.create("cache.db")
        ```
    """

    def get(self, key: str) -> CacheEntryEntity | None:
        """Look up the entry for a key.

        Args:
            key: The cache key

        Returns:
            The entry if present, None otherwise

        Raises:
            StorageError: On I/O fault (never on absence)
        """
        ...

    def put(self, key: str, payload: str, timestamp: float) -> None:
        """Upsert the entry for a key atomically.

        Payload and timestamp are replaced together. The stored timestamp
        never moves backwards: if ``timestamp`` is older than the stored one,
        the stored one is kept.

        Args:
            key: The cache key
            payload: Serialized upstream response, stored verbatim
            timestamp: Unix timestamp of the write

        Raises:
            StorageError: On I/O fault; nothing is written in that case
        """
        ...

    def sweep_older_than(self, cutoff: float) -> int:
        """Delete all entries whose ``cached_at`` is strictly before ``cutoff``.

        Args:
            cutoff: Unix timestamp; entries at or after it are kept

        Returns:
            Number of entries deleted

        Raises:
            StorageError: On I/O fault
        """
        ...

    def count_all(self) -> int:
        """Count total entries in the cache.

        Returns:
            Total number of cached entries
        """
        ...

    def health_check(self) -> bool:
        """Check if the store is accessible.

        Returns:
            True if healthy, False otherwise
        """
        ...

    def get_stats(self) -> dict:
        """Get repository statistics.

        Returns:
            Dictionary with stats (implementation-specific)
        """
        ...
