"""SQLite implementation of CacheStore.

A single durable table keyed by ``cache_key`` with indexes on the key (point
lookups) and on ``cached_at`` (range sweeps). Every operation is a single
statement, so SQLite's own transaction gives the atomic upsert.
"""

import logging
import sqlite3
import threading

from ticket_cache.config import settings
from ticket_cache.entities import CacheEntryEntity
from ticket_cache.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS jira_cache (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    cache_key   TEXT NOT NULL UNIQUE,
    data        TEXT NOT NULL,
    cached_at   REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_jira_cache_cache_key ON jira_cache(cache_key);
CREATE INDEX IF NOT EXISTS idx_jira_cache_cached_at ON jira_cache(cached_at);
"""

UPSERT = """
INSERT INTO jira_cache (cache_key, data, cached_at)
VALUES (?, ?, ?)
ON CONFLICT(cache_key) DO UPDATE SET
    data = excluded.data,
    cached_at = MAX(jira_cache.cached_at, excluded.cached_at)
"""


class SqliteCacheRepository:
    """SQLite implementation of the CacheStore protocol.

    One connection is shared between the event loop and the sweeper thread,
    guarded by a lock; statements are short so contention stays low.
    """

    def __init__(self, path: str | None = None) -> None:
        """Initialize the SQLite cache repository.

        Args:
            path: Database file path (``":memory:"`` for a private in-memory DB).
                Defaults to settings.
        """
        self._path = path or settings.cache_sqlite_path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            with self._conn:
                self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open cache database {self._path!r}: {e}") from e

    @classmethod
    def create(cls, path: str | None = None) -> "SqliteCacheRepository":
        """Factory method to create SqliteCacheRepository with defaults.

        Args:
            path: Database file path. If None, uses settings.

        Returns:
            Configured SqliteCacheRepository
        """
        return cls(path=path)

    def get(self, key: str) -> CacheEntryEntity | None:
        """Look up the entry for a key.

        Raises:
            StorageError: If the database cannot be read
        """
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT cache_key, data, cached_at FROM jira_cache WHERE cache_key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read cache entry {key!r}: {e}") from e

        if row is None:
            return None
        return CacheEntryEntity(key=row[0], payload=row[1], cached_at=float(row[2]))

    def put(self, key: str, payload: str, timestamp: float) -> None:
        """Upsert the entry for a key.

        Raises:
            StorageError: If the write fails (and is rolled back)
        """
        try:
            with self._lock, self._conn:
                self._conn.execute(UPSERT, (key, payload, timestamp))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write cache entry {key!r}: {e}") from e

    def sweep_older_than(self, cutoff: float) -> int:
        """Delete all entries cached strictly before ``cutoff``.

        Returns:
            Number of entries deleted

        Raises:
            StorageError: If the delete fails
        """
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute("DELETE FROM jira_cache WHERE cached_at < ?", (cutoff,))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to sweep cache entries: {e}") from e

        if cursor.rowcount:
            logger.info("Swept %d cache entries older than %.3f", cursor.rowcount, cutoff)
        return cursor.rowcount

    def count_all(self) -> int:
        try:
            with self._lock:
                (count,) = self._conn.execute("SELECT COUNT(*) FROM jira_cache").fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count cache entries: {e}") from e
        return count

    def health_check(self) -> bool:
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def get_stats(self) -> dict:
        return {
            "backend": "sqlite",
            "path": self._path,
            "total_entries": self.count_all(),
        }

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
