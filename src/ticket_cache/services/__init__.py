"""Service layer for business logic.

This layer contains the cache policy and fetch orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from ticket_cache.services import FetchCoordinator

    coordinator = FetchCoordinator.create(store=store, fetcher=fetcher)
    payload = await coordinator.resolve("my_issues:me", force_refresh=False)
    ```
"""

from .fetch_coordinator import FetchCoordinator
from .sweeper import StalenessSweeper
from .ttl_policy import is_fresh, remaining_ttl

__all__ = [
    "FetchCoordinator",
    "StalenessSweeper",
    "is_fresh",
    "remaining_ttl",
]
