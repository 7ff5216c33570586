"""Repository layer for data access.

This layer abstracts external dependencies (Redis, SQLite, the claude CLI)
behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis → SQLite, CLI → REST, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from ticket_cache.protocols import CacheStore, IssueFetcher

from .claude_issue_fetcher import ClaudeIssueFetcher
from .redis_repository import RedisCacheRepository
from .sqlite_repository import SqliteCacheRepository

__all__ = [
    "CacheStore",
    "IssueFetcher",
    "ClaudeIssueFetcher",
    "RedisCacheRepository",
    "SqliteCacheRepository",
]
