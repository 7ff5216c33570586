"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from ticket_cache.config import settings
from ticket_cache.handlers import IssuesHandler
from ticket_cache.protocols import CacheStore, IssueFetcher
from ticket_cache.repositories import (
    ClaudeIssueFetcher,
    RedisCacheRepository,
    SqliteCacheRepository,
)
from ticket_cache.services import FetchCoordinator, StalenessSweeper

logger = logging.getLogger(__name__)


def get_coordinator(request: Request) -> FetchCoordinator:
    """Dependency injection for FetchCoordinator from app.state.

    Raises:
        RuntimeError: If coordinator is not initialized
    """
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise RuntimeError("FetchCoordinator not initialized. Check lifespan setup.")
    return coordinator


def get_handler(request: Request) -> IssuesHandler:
    """Dependency injection for IssuesHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "issues_handler", None)
    if handler is None:
        raise RuntimeError("IssuesHandler not initialized. Check lifespan setup.")
    return handler


def create_store() -> CacheStore:
    """Build the cache store selected by CACHE_BACKEND."""
    if settings.uses_redis:
        return RedisCacheRepository.create()
    return SqliteCacheRepository.create()


def make_lifespan(
    store: CacheStore | None = None,
    fetcher: IssueFetcher | None = None,
    sweep_interval: float | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the lifespan context manager for the app.

    Args:
        store: Cache store. If None, built from settings at startup.
        fetcher: Upstream fetcher. If None, the claude CLI fetcher.
        sweep_interval: Seconds between sweeps; 0 disables. Defaults to settings.

    Returns:
        Lifespan callable for ``FastAPI(lifespan=...)``
    """
    interval = settings.cache_sweep_interval if sweep_interval is None else sweep_interval

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize all layers and store them in app.state.

        1. Store and fetcher (data access)
        2. Coordinator and sweeper (business logic)
        3. Handler (HTTP endpoints)
        """
        logging.basicConfig(level=settings.log_level)

        cache_store = store or create_store()
        issue_fetcher = fetcher or ClaudeIssueFetcher.create()

        coordinator = FetchCoordinator.create(store=cache_store, fetcher=issue_fetcher)
        sweeper = StalenessSweeper(coordinator, interval) if interval > 0 else None
        handler = IssuesHandler(
            coordinator=coordinator,
            sweeper=sweeper,
            default_user=settings.jira_default_user,
        )

        app.state.coordinator = coordinator
        app.state.sweeper = sweeper
        app.state.issues_handler = handler

        if sweeper is not None:
            sweeper.start()

        logger.info("Ticket cache initialized (store: %s)", type(cache_store).__name__)
        logger.info("TTL: %ss, fetcher: %s", coordinator.ttl, issue_fetcher.name)
        logger.info("Health: %s", coordinator.is_healthy())

        yield

        if sweeper is not None:
            await sweeper.stop()

        del app.state.issues_handler
        del app.state.sweeper
        del app.state.coordinator
        logger.info("Ticket cache shut down")

    return lifespan


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[IssuesHandler, Depends(get_handler)]
CoordinatorDep = Annotated[FetchCoordinator, Depends(get_coordinator)]
