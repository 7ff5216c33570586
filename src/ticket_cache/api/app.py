from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticket_cache.api.dependencies import CoordinatorDep, HandlerDep, make_lifespan
from ticket_cache.config import settings
from ticket_cache.dto import ApiResponse, CacheStatsResponse, HealthCheckResponse, SweepResponse
from ticket_cache.protocols import CacheStore, IssueFetcher

API_VERSION = "0.1.0"


def create_app(
    store: CacheStore | None = None,
    fetcher: IssueFetcher | None = None,
    sweep_interval: float | None = None,
) -> FastAPI:
    """Create the Ticket Cache API.

    Args:
        store: Cache store override (defaults to the configured backend).
        fetcher: Upstream fetcher override (defaults to the claude CLI).
        sweep_interval: Background sweep interval override; 0 disables.

    Returns:
        The FastAPI application
    """
    app = FastAPI(
        title="Ticket Cache API",
        description="Cached, single-flight access to Jira issues",
        version=API_VERSION,
        lifespan=make_lifespan(store=store, fetcher=fetcher, sweep_interval=sweep_interval),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Ticket Cache API",
            "version": API_VERSION,
            "description": "Cached, single-flight access to Jira issues",
            "endpoints": {
                "issues": "/jira/my-issues",
                "refresh": "/jira/refresh",
                "stats": "/cache/stats",
                "sweep": "/cache/sweep",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: HandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.get("/jira/my-issues", response_model=ApiResponse)
    async def my_issues(handler: HandlerDep, user: str | None = None) -> JSONResponse:
        """Fetch Jira issues, served from cache while fresh."""
        return await handler.get_my_issues(user)

    @app.post("/jira/refresh", response_model=ApiResponse)
    async def refresh_issues(handler: HandlerDep, user: str | None = None) -> JSONResponse:
        """Force refresh Jira issues, bypassing the freshness check."""
        return await handler.refresh_my_issues(user)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: HandlerDep) -> CacheStatsResponse:
        """Get cache statistics."""
        return await handler.get_stats()

    @app.post("/cache/sweep", response_model=SweepResponse)
    async def sweep_cache(handler: HandlerDep) -> SweepResponse:
        """Remove entries older than the TTL now."""
        return await handler.sweep()

    @app.get("/cache/ttl", response_model=dict[str, float])
    async def get_ttl(coordinator: CoordinatorDep) -> dict[str, float]:
        """Get the cache entry lifetime in seconds."""
        return {"ttl": coordinator.ttl}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticket_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
