"""Ticket Cache - cached, single-flight access to a slow issue tracker.

This package provides a layered architecture for caching Jira query results:

Layers:
    - protocols: Interface contracts (CacheStore, IssueFetcher)
    - repositories: Data access implementations (Redis, SQLite, claude CLI)
    - services: Freshness policy, fetch coordination, background sweep
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from ticket_cache.repositories import ClaudeIssueFetcher, RedisCacheRepository
    from ticket_cache.services import FetchCoordinator

    coordinator = FetchCoordinator.create(
        store=RedisCacheRepository.create(),
        fetcher=ClaudeIssueFetcher.create(),
    )
    payload = await coordinator.get_cached("my_issues:me")
    ```

For HTTP API:
    ```python
    from ticket_cache.api.app import app
    ```
"""

from ticket_cache.config import get_redis_client, settings
from ticket_cache.entities import CacheEntryEntity, IssueQuery
from ticket_cache.errors import (
    CachePersistError,
    ErrorKind,
    FetchError,
    StorageError,
    TicketCacheError,
)
from ticket_cache.handlers import IssuesHandler
from ticket_cache.models import JiraIssue, JiraIssuesResponse
from ticket_cache.protocols import CacheStore, IssueFetcher
from ticket_cache.repositories import (
    ClaudeIssueFetcher,
    RedisCacheRepository,
    SqliteCacheRepository,
)
from ticket_cache.services import FetchCoordinator, StalenessSweeper

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheStore",
    "IssueFetcher",
    # Services (business logic)
    "FetchCoordinator",
    "StalenessSweeper",
    # Handlers (HTTP)
    "IssuesHandler",
    # Repositories (data access)
    "RedisCacheRepository",
    "SqliteCacheRepository",
    "ClaudeIssueFetcher",
    # Entities (domain models)
    "CacheEntryEntity",
    "IssueQuery",
    # Payload models
    "JiraIssue",
    "JiraIssuesResponse",
    # Errors
    "ErrorKind",
    "TicketCacheError",
    "StorageError",
    "FetchError",
    "CachePersistError",
]
