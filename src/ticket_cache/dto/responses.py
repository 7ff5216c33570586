"""Response DTOs for API endpoints."""

from pydantic import BaseModel, Field

from ticket_cache.errors import ErrorKind
from ticket_cache.models import JiraIssuesResponse


class ErrorInfo(BaseModel):
    """Structured error payload (stable kind tag + human-readable detail)."""

    code: ErrorKind = Field(..., description="Stable error kind tag")
    details: str = Field(..., description="Human-readable error detail")


class ApiResponse(BaseModel):
    """Envelope returned by the issue endpoints.

    ``data`` can be present together with ``error_data`` when fresh issues
    were fetched but could not be cached (code ``cache_write_failed``).
    """

    success: bool = Field(..., description="Whether the request fully succeeded")
    data: JiraIssuesResponse | None = Field(None, description="The issue list, if any")
    error_data: ErrorInfo | None = Field(None, description="Error details on failure")
    message: str | None = Field(None, description="Human-readable status message")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    backend: str = Field(..., description="Cache store backend (redis or sqlite)")
    total_entries: int = Field(..., description="Total number of cached entries", ge=0)
    ttl_seconds: float = Field(..., description="Time-to-live for cache entries in seconds", gt=0)
    in_flight: int = Field(..., description="Upstream fetches currently running", ge=0)
    hits: int = Field(0, description="Requests served from cache", ge=0)
    fetches: int = Field(0, description="Upstream fetches started", ge=0)
    joins: int = Field(0, description="Requests that joined an in-flight fetch", ge=0)
    failures: int = Field(0, description="Upstream fetches that failed", ge=0)
    fetcher: str = Field(..., description="Upstream fetcher identifier")


class SweepResponse(BaseModel):
    """Response DTO for a manual staleness sweep."""

    success: bool = Field(..., description="Whether the sweep completed")
    deleted_count: int = Field(..., description="Entries removed", ge=0)


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    sweeper_running: bool | None = Field(None, description="Whether the background sweep is active")
