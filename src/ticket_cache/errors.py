"""Error taxonomy for the ticket cache.

Every error carries a stable ``kind`` tag plus free-text ``detail`` so the
HTTP layer can report it without leaking raw internal faults.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Stable error kind tags exposed to callers."""

    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_REJECTED = "upstream_rejected"
    TIMEOUT = "timeout"
    STORAGE_ERROR = "storage_error"
    CACHE_WRITE_FAILED = "cache_write_failed"


UPSTREAM_KINDS = frozenset(
    {ErrorKind.UPSTREAM_UNAVAILABLE, ErrorKind.UPSTREAM_REJECTED, ErrorKind.TIMEOUT}
)


class TicketCacheError(Exception):
    """Base error with a kind tag and human-readable detail."""

    def __init__(self, kind: ErrorKind, detail: str) -> None:
        super().__init__(f"{kind.value}: {detail}")
        self.kind = kind
        self.detail = detail


class StorageError(TicketCacheError):
    """Cache store I/O fault."""

    def __init__(self, detail: str) -> None:
        super().__init__(ErrorKind.STORAGE_ERROR, detail)


class FetchError(TicketCacheError):
    """Upstream fetch fault (unavailable, rejected or timed out)."""

    def __init__(self, kind: ErrorKind, detail: str) -> None:
        if kind not in UPSTREAM_KINDS:
            raise ValueError(f"FetchError kind must be an upstream kind, got {kind.value}")
        super().__init__(kind, detail)

    @classmethod
    def unavailable(cls, detail: str) -> "FetchError":
        return cls(ErrorKind.UPSTREAM_UNAVAILABLE, detail)

    @classmethod
    def rejected(cls, detail: str) -> "FetchError":
        return cls(ErrorKind.UPSTREAM_REJECTED, detail)

    @classmethod
    def timeout(cls, seconds: float) -> "FetchError":
        return cls(
            ErrorKind.TIMEOUT,
            f"Request timed out after {seconds:g} seconds. Please try again.",
        )


class CachePersistError(TicketCacheError):
    """Fresh data was fetched but could not be written to the cache.

    The payload is attached so callers can still use it for the current
    request, even though it was not cached.
    """

    def __init__(self, detail: str, payload: str) -> None:
        super().__init__(ErrorKind.CACHE_WRITE_FAILED, detail)
        self.payload = payload
