"""Shared fakes and fixtures for ticket cache tests."""

from __future__ import annotations

import asyncio

import pytest

from ticket_cache.entities import CacheEntryEntity, IssueQuery
from ticket_cache.errors import StorageError
from ticket_cache.models import JiraIssue, JiraIssuesResponse
from ticket_cache.repositories import SqliteCacheRepository

T0 = 1_700_000_000.0


def make_payload(*keys: str) -> str:
    issues = [JiraIssue(key=key, summary=f"Summary {key}", status="To Do") for key in keys]
    return JiraIssuesResponse.from_issues(issues).model_dump_json()


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """Upstream fake; hold ``gate`` closed to keep a fetch in flight."""

    name = "fake"

    def __init__(self, *payloads: str):
        self.payloads = list(payloads) or [make_payload("PROJ-1")]
        self.calls: list[IssueQuery] = []
        self.error: BaseException | None = None
        self.gate: asyncio.Event | None = None

    async def fetch(self, query: IssueQuery) -> str:
        self.calls.append(query)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        index = min(len(self.calls), len(self.payloads)) - 1
        return self.payloads[index]


class BrokenStore:
    """Store whose reads and/or writes fail like an unreachable database."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False):
        self.inner = SqliteCacheRepository(":memory:")
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, key: str) -> CacheEntryEntity | None:
        if self.fail_reads:
            raise StorageError("disk I/O error")
        return self.inner.get(key)

    def put(self, key: str, payload: str, timestamp: float) -> None:
        if self.fail_writes:
            raise StorageError("database is locked")
        self.inner.put(key, payload, timestamp)

    def sweep_older_than(self, cutoff: float) -> int:
        return self.inner.sweep_older_than(cutoff)

    def count_all(self) -> int:
        return self.inner.count_all()

    def health_check(self) -> bool:
        return not self.fail_reads

    def get_stats(self) -> dict:
        return self.inner.get_stats()


async def let_tasks_run(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store():
    repo = SqliteCacheRepository(":memory:")
    yield repo
    repo.close()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(make_payload("PROJ-1"), make_payload("PROJ-1", "PROJ-2"))
