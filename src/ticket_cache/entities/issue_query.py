"""Issue query domain entity."""

from dataclasses import dataclass

DEFAULT_SCOPE = "my_issues"


@dataclass(frozen=True)
class IssueQuery:
    """Query context handed to the upstream fetcher.

    Attributes:
        user: Whose issues to fetch
        scope: Query shape; only the assigned-issues query exists today
    """

    user: str
    scope: str = DEFAULT_SCOPE

    @property
    def cache_key(self) -> str:
        """Cache key for this query (user + query shape)."""
        return f"{self.scope}:{self.user}"

    @classmethod
    def from_cache_key(cls, key: str) -> "IssueQuery":
        """Rebuild the query a cache key was derived from.

        Keys without a scope prefix are treated as a bare user name.
        """
        scope, sep, user = key.partition(":")
        if not sep:
            return cls(user=key)
        return cls(user=user, scope=scope)
