"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → SQLite, claude CLI → REST, etc.)
- Unit testing with fake implementations
- Clear separation of concerns
"""

from .cache_store import CacheStore
from .issue_fetcher import IssueFetcher

__all__ = [
    "CacheStore",
    "IssueFetcher",
]
