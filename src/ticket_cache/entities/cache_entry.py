"""Cache entry domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for one cached upstream result.

    The payload is stored verbatim; the cache never interprets it.

    Attributes:
        key: Cache key identifying the query (unique per entry)
        payload: Serialized upstream response
        cached_at: Unix timestamp of the last successful write
    """

    key: str
    payload: str
    cached_at: float
