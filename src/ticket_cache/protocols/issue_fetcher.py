"""Upstream fetcher protocol."""

from typing import Protocol, runtime_checkable

from ticket_cache.entities import IssueQuery


@runtime_checkable
class IssueFetcher(Protocol):
    """Protocol for the upstream issue-tracker client.

    Implementations perform exactly one upstream call per ``fetch`` and never
    touch the cache store; persisting the result is the coordinator's job.
    They are expected to enforce their own timeout.
    """

    @property
    def name(self) -> str:
        """Short identifier used in logs and stats."""
        ...

    async def fetch(self, query: IssueQuery) -> str:
        """Fetch the serialized issue list for a query.

        Args:
            query: The query context (user and query shape)

        Returns:
            The serialized upstream response

        Raises:
            FetchError: If the upstream is unavailable, rejects the request,
                or times out
        """
        ...
