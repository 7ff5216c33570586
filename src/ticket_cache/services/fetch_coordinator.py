"""Fetch coordination: the core of the ticket cache.

For each request the coordinator decides whether to serve the stored entry,
start an upstream fetch, or join a fetch that is already running for the same
key. Concurrent requests for one key collapse into a single upstream call
(single-flight); unrelated keys never wait on each other.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from ticket_cache.config import settings
from ticket_cache.entities import IssueQuery
from ticket_cache.errors import CachePersistError, ErrorKind, FetchError, StorageError
from ticket_cache.protocols import CacheStore, IssueFetcher
from ticket_cache.services.ttl_policy import is_fresh, remaining_ttl

logger = logging.getLogger(__name__)


class FetchCoordinator:
    """Serves cached payloads and coordinates upstream fetches.

    The pending-request registry maps a cache key to the ``asyncio.Task``
    running its upstream fetch. Checking the registry and registering a new
    task happen with no ``await`` in between, so the decision is atomic on
    the event loop without any lock. The task removes its own registry entry
    before it settles, so a caller arriving after settlement always starts a
    new fetch.

    Waiters await the task through ``asyncio.shield``: a caller that gives up
    does not cancel the fetch other callers are waiting on.

    Example:
        ```python
        coordinator = FetchCoordinator.create(
            store=RedisCacheRepository.create(),
            fetcher=ClaudeIssueFetcher.create(),
        )
        payload = await coordinator.get_cached("my_issues:me")
        payload = await coordinator.force_refresh("my_issues:me")
        ```
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: IssueFetcher,
        ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Cache storage backend (required).
            fetcher: Upstream issue fetcher (required).
            ttl: Entry lifetime in seconds. Defaults to settings.
            clock: Source of Unix timestamps, injectable for tests.
        """
        self._store = store
        self._fetcher = fetcher
        self._ttl = ttl or settings.cache_ttl
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task[str]] = {}
        self._stats = {"hits": 0, "fetches": 0, "joins": 0, "failures": 0}

    @classmethod
    def create(
        cls,
        store: CacheStore,
        fetcher: IssueFetcher,
        ttl: float | None = None,
    ) -> "FetchCoordinator":
        """Factory method to create FetchCoordinator with defaults.

        Args:
            store: Cache storage backend (required).
            fetcher: Upstream issue fetcher (required).
            ttl: Entry lifetime in seconds. If None, uses settings.

        Returns:
            Configured FetchCoordinator instance
        """
        return cls(store=store, fetcher=fetcher, ttl=ttl)

    async def resolve(
        self,
        key: str,
        force_refresh: bool = False,
        *,
        query: IssueQuery | None = None,
        ttl: float | None = None,
    ) -> str:
        """Return the payload for a key, fetching upstream when needed.

        Business logic:
        1. Unless forced, serve a fresh stored entry without any upstream call
        2. Otherwise join the in-flight fetch for the key, or start one
        3. On success the payload is written back (overwriting any entry)
        4. On failure nothing is written and every waiter gets the same error

        Args:
            key: The cache key
            force_refresh: Skip the freshness check (still joins in-flight fetches)
            query: Query context for the fetcher. Derived from the key if None.
            ttl: Per-call lifetime override in seconds

        Returns:
            The serialized payload

        Raises:
            StorageError: If the stored entry cannot be read
            FetchError: If the upstream fetch fails
            CachePersistError: If the fetch succeeded but the write-back failed
        """
        if force_refresh:
            logger.info("Force refreshing %s", key)
        else:
            entry = self._store.get(key)
            if entry is None:
                logger.info("Cache miss for %s", key)
            else:
                now = self._clock()
                lifetime = self._ttl if ttl is None else ttl
                if is_fresh(entry.cached_at, now, lifetime):
                    self._stats["hits"] += 1
                    logger.info(
                        "Returning cached %s (TTL: %.0fs remaining)",
                        key,
                        remaining_ttl(entry.cached_at, now, lifetime),
                    )
                    return entry.payload
                logger.info("Cache entry for %s is stale", key)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._fetch_and_store(key, query or IssueQuery.from_cache_key(key))
            )
            self._in_flight[key] = task
            self._stats["fetches"] += 1
        else:
            self._stats["joins"] += 1
            logger.info("Joining in-flight fetch for %s", key)

        return await asyncio.shield(task)

    async def get_cached(self, key: str, *, query: IssueQuery | None = None) -> str:
        """Serve from cache when fresh (``resolve(key, False)``)."""
        return await self.resolve(key, False, query=query)

    async def force_refresh(self, key: str, *, query: IssueQuery | None = None) -> str:
        """Bypass the freshness check (``resolve(key, True)``)."""
        return await self.resolve(key, True, query=query)

    async def _fetch_and_store(self, key: str, query: IssueQuery) -> str:
        try:
            try:
                payload = await self._fetcher.fetch(query)
            except FetchError as e:
                self._stats["failures"] += 1
                logger.warning("Upstream fetch for %s failed (%s): %s", key, e.kind.value, e.detail)
                raise
            except asyncio.TimeoutError as e:
                self._stats["failures"] += 1
                logger.warning("Upstream fetch for %s timed out", key)
                raise FetchError(ErrorKind.TIMEOUT, "Upstream request timed out") from e
            except Exception as e:
                self._stats["failures"] += 1
                logger.exception("Unexpected error fetching %s from %s", key, self._fetcher.name)
                raise FetchError.unavailable(f"Upstream fetch failed: {e}") from e

            try:
                self._store.put(key, payload, self._clock())
            except StorageError as e:
                logger.error("Fetched %s but failed to cache it: %s", key, e.detail)
                raise CachePersistError(
                    f"Fetched fresh data but failed to cache it: {e.detail}", payload
                ) from e

            return payload
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    def is_in_flight(self, key: str) -> bool:
        """Check if an upstream fetch for the key is running."""
        return key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        """Number of keys with a running upstream fetch."""
        return len(self._in_flight)

    def sweep_stale(self) -> int:
        """Remove entries older than the TTL from the store.

        Housekeeping only: stale entries are never served, this just bounds
        storage growth.

        Returns:
            Number of entries removed
        """
        return self._store.sweep_older_than(self._clock() - self._ttl)

    def get_stats(self) -> dict:
        """Get coordinator and store statistics.

        Returns:
            Dictionary with cache statistics
        """
        stats = self._store.get_stats()
        stats.update(self._stats)
        stats["in_flight"] = self.in_flight_count
        stats["ttl"] = self._ttl
        stats["fetcher"] = self._fetcher.name
        return stats

    def is_healthy(self) -> bool:
        """Check if the cache store is reachable."""
        return self._store.health_check()

    @property
    def ttl(self) -> float:
        """Get the default entry lifetime in seconds."""
        return self._ttl

    @property
    def store(self) -> CacheStore:
        """Get the underlying store (for testing)."""
        return self._store

    @property
    def fetcher(self) -> IssueFetcher:
        """Get the underlying fetcher (for testing)."""
        return self._fetcher
