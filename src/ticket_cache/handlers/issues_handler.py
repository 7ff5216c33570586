"""HTTP handlers for issue and cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes and error envelopes.
"""

import asyncio
import logging

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ticket_cache.dto import (
    ApiResponse,
    CacheStatsResponse,
    ErrorInfo,
    HealthCheckResponse,
    SweepResponse,
)
from ticket_cache.entities import IssueQuery
from ticket_cache.errors import CachePersistError, ErrorKind, TicketCacheError
from ticket_cache.models import JiraIssuesResponse
from ticket_cache.services import FetchCoordinator, StalenessSweeper

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.UPSTREAM_REJECTED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.STORAGE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.CACHE_WRITE_FAILED: status.HTTP_200_OK,
}


def _envelope(response: ApiResponse, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


def _decode(payload: str) -> JiraIssuesResponse:
    return JiraIssuesResponse.model_validate_json(payload)


class IssuesHandler:
    """HTTP handlers for the issue endpoints.

    This handler delegates caching and fetching to FetchCoordinator and
    turns every TicketCacheError into an ``ApiResponse`` error envelope
    carrying the error kind and detail.

    Example:
        ```python
        handler = IssuesHandler(coordinator=coordinator)

        @app.get("/jira/my-issues")
        async def my_issues(user: str | None = None):
            return await handler.get_my_issues(user)
        ```
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        sweeper: StalenessSweeper | None = None,
        default_user: str = "me",
    ) -> None:
        """Initialize the issues handler.

        Args:
            coordinator: The fetch coordinator (required).
            sweeper: Background sweeper, reported in health and reused for
                manual sweeps.
            default_user: User whose issues are served when none is given.
        """
        self._coordinator = coordinator
        self._sweeper = sweeper
        self._default_user = default_user

    def _query(self, user: str | None) -> IssueQuery:
        return IssueQuery(user=user or self._default_user)

    async def get_my_issues(self, user: str | None = None) -> JSONResponse:
        """Handle GET /jira/my-issues (served from cache when fresh)."""
        return await self._resolve(self._query(user), force_refresh=False)

    async def refresh_my_issues(self, user: str | None = None) -> JSONResponse:
        """Handle POST /jira/refresh (bypasses the freshness check)."""
        return await self._resolve(self._query(user), force_refresh=True)

    async def _resolve(self, query: IssueQuery, force_refresh: bool) -> JSONResponse:
        try:
            payload = await self._coordinator.resolve(
                query.cache_key, force_refresh, query=query
            )
            issues = _decode(payload)
        except CachePersistError as e:
            # Fresh data is usable for this request even though it wasn't cached
            return _envelope(
                ApiResponse(
                    success=False,
                    data=_decode(e.payload),
                    error_data=ErrorInfo(code=e.kind, details=e.detail),
                    message="Fetched fresh issues but failed to cache them",
                ),
                ERROR_STATUS[e.kind],
            )
        except TicketCacheError as e:
            logger.error("Failed to resolve %s: %s", query.cache_key, e)
            return _envelope(
                ApiResponse(success=False, error_data=ErrorInfo(code=e.kind, details=e.detail)),
                ERROR_STATUS[e.kind],
            )
        except ValidationError as e:
            logger.error("Cached payload for %s is not a valid issue list: %s", query.cache_key, e)
            return _envelope(
                ApiResponse(
                    success=False,
                    error_data=ErrorInfo(
                        code=ErrorKind.STORAGE_ERROR,
                        details="Cached issue data is unreadable",
                    ),
                ),
                ERROR_STATUS[ErrorKind.STORAGE_ERROR],
            )

        logger.info("Returning %d Jira issues for %s", issues.total, query.user)
        return _envelope(ApiResponse(success=True, data=issues))

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests.

        Raises:
            HTTPException: If the store cannot be read
        """
        try:
            stats = self._coordinator.get_stats()
        except TicketCacheError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e.detail}",
            ) from e

        return CacheStatsResponse(
            backend=stats.get("backend", "unknown"),
            total_entries=stats.get("total_entries", 0),
            ttl_seconds=stats["ttl"],
            in_flight=stats["in_flight"],
            hits=stats["hits"],
            fetches=stats["fetches"],
            joins=stats["joins"],
            failures=stats["failures"],
            fetcher=stats["fetcher"],
        )

    async def sweep(self) -> SweepResponse:
        """Handle POST /cache/sweep requests.

        Raises:
            HTTPException: If the sweep fails
        """
        try:
            if self._sweeper is not None:
                removed = await self._sweeper.run_once()
            else:
                removed = await asyncio.to_thread(self._coordinator.sweep_stale)
        except TicketCacheError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to sweep cache: {e.detail}",
            ) from e

        return SweepResponse(success=True, deleted_count=removed)

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        is_healthy = self._coordinator.is_healthy()

        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            cache_healthy=is_healthy,
            sweeper_running=self._sweeper.is_running if self._sweeper is not None else None,
        )
