"""Tests for FetchCoordinator freshness, single-flight and failure handling."""

from __future__ import annotations

import asyncio

import pytest

from conftest import T0, BrokenStore, FakeClock, FakeFetcher, let_tasks_run, make_payload
from ticket_cache.entities import CacheEntryEntity, IssueQuery
from ticket_cache.errors import CachePersistError, ErrorKind, FetchError, StorageError
from ticket_cache.services import FetchCoordinator

TTL = 300.0


@pytest.fixture
def coordinator(store, fetcher, clock) -> FetchCoordinator:
    return FetchCoordinator(store=store, fetcher=fetcher, ttl=TTL, clock=clock)


class TestFreshness:
    @pytest.mark.asyncio
    async def test_cold_key_fetches_once_and_stores(self, coordinator, store, fetcher, clock):
        payload = await coordinator.resolve("my_issues:alice", False)

        assert payload == fetcher.payloads[0]
        assert len(fetcher.calls) == 1
        assert fetcher.calls[0] == IssueQuery(user="alice")
        assert store.get("my_issues:alice") == CacheEntryEntity(
            key="my_issues:alice", payload=payload, cached_at=clock.now
        )

    @pytest.mark.asyncio
    async def test_fresh_entry_served_without_fetch_or_write(self, coordinator, store, fetcher, clock):
        store.put("U1", "P0", T0)
        clock.now = T0 + 60

        assert await coordinator.resolve("U1", False) == "P0"
        assert fetcher.calls == []
        assert store.get("U1").cached_at == T0

    @pytest.mark.asyncio
    async def test_entry_at_exactly_ttl_is_refetched(self, coordinator, store, fetcher, clock):
        store.put("U1", "P0", T0)
        clock.now = T0 + TTL

        assert await coordinator.resolve("U1", False) == fetcher.payloads[0]
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_future_cached_at_is_treated_as_fresh(self, coordinator, store, fetcher, clock):
        store.put("U1", "P0", T0 + 3600)

        assert await coordinator.resolve("U1", False) == "P0"
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_per_call_ttl_override(self, coordinator, store, fetcher, clock):
        store.put("U1", "P0", T0)
        clock.now = T0 + 60

        await coordinator.resolve("U1", False, ttl=30)
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_forced_refresh_fetches_even_when_fresh(self, coordinator, store, fetcher, clock):
        store.put("U1", "P0", T0)
        clock.now = T0 + 1

        payload = await coordinator.resolve("U1", True)

        assert payload == fetcher.payloads[0]
        assert len(fetcher.calls) == 1
        assert store.get("U1") == CacheEntryEntity(key="U1", payload=payload, cached_at=T0 + 1)

    @pytest.mark.asyncio
    async def test_ticket_lifecycle_scenario(self, store, clock):
        fetcher = FakeFetcher("P1", "P2")
        coordinator = FetchCoordinator(store=store, fetcher=fetcher, ttl=TTL, clock=clock)
        store.put("U1", "P0", T0)

        clock.now = T0 + 60
        assert await coordinator.get_cached("U1") == "P0"
        assert len(fetcher.calls) == 0

        clock.now = T0 + 360
        assert await coordinator.get_cached("U1") == "P1"
        assert len(fetcher.calls) == 1
        assert store.get("U1") == CacheEntryEntity(key="U1", payload="P1", cached_at=T0 + 360)

        clock.now = T0 + 365
        assert await coordinator.force_refresh("U1") == "P2"
        assert len(fetcher.calls) == 2
        assert store.get("U1").cached_at == T0 + 365


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_cold_calls_share_one_fetch(self, coordinator, store, fetcher):
        fetcher.gate = asyncio.Event()

        callers = [asyncio.create_task(coordinator.resolve("U2", False)) for _ in range(5)]
        await let_tasks_run()

        assert len(fetcher.calls) == 1
        assert coordinator.is_in_flight("U2")

        fetcher.gate.set()
        results = await asyncio.gather(*callers)

        assert results == [fetcher.payloads[0]] * 5
        assert len(fetcher.calls) == 1
        assert store.count_all() == 1
        assert coordinator.in_flight_count == 0
        assert coordinator.get_stats()["joins"] == 4

    @pytest.mark.asyncio
    async def test_forced_refresh_joins_running_fetch(self, coordinator, fetcher):
        fetcher.gate = asyncio.Event()

        first = asyncio.create_task(coordinator.resolve("U2", False))
        await let_tasks_run()
        forced = asyncio.create_task(coordinator.resolve("U2", True))
        await let_tasks_run()

        assert len(fetcher.calls) == 1

        fetcher.gate.set()
        assert await first == await forced
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_unrelated_keys_fetch_independently(self, coordinator, fetcher):
        fetcher.gate = asyncio.Event()

        a = asyncio.create_task(coordinator.resolve("my_issues:alice", False))
        b = asyncio.create_task(coordinator.resolve("my_issues:bob", False))
        await let_tasks_run()

        assert coordinator.in_flight_count == 2
        assert {q.user for q in fetcher.calls} == {"alice", "bob"}

        fetcher.gate.set()
        await asyncio.gather(a, b)

    @pytest.mark.asyncio
    async def test_abandoned_caller_does_not_cancel_shared_fetch(self, coordinator, store, fetcher):
        fetcher.gate = asyncio.Event()

        quitter = asyncio.create_task(coordinator.resolve("U2", False))
        waiter = asyncio.create_task(coordinator.resolve("U2", False))
        await let_tasks_run()

        quitter.cancel()
        await let_tasks_run()
        assert coordinator.is_in_flight("U2")

        fetcher.gate.set()
        assert await waiter == fetcher.payloads[0]
        with pytest.raises(asyncio.CancelledError):
            await quitter
        assert store.get("U2").payload == fetcher.payloads[0]

    @pytest.mark.asyncio
    async def test_call_after_settlement_starts_new_fetch(self, coordinator, fetcher):
        await coordinator.resolve("U2", True)
        await coordinator.resolve("U2", True)

        assert len(fetcher.calls) == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_entry_unchanged(self, coordinator, store, fetcher, clock):
        store.put("U1", "P0", T0)
        before = store.get("U1")
        clock.now = T0 + 600
        fetcher.error = FetchError.unavailable("Jira is down")

        with pytest.raises(FetchError) as exc_info:
            await coordinator.resolve("U1", False)

        assert exc_info.value.kind is ErrorKind.UPSTREAM_UNAVAILABLE
        assert store.get("U1") == before
        assert coordinator.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_failure_is_not_remembered(self, coordinator, fetcher):
        fetcher.error = FetchError.rejected("bad reply")
        with pytest.raises(FetchError):
            await coordinator.resolve("U1", False)

        fetcher.error = None
        assert await coordinator.resolve("U1", False) == fetcher.payloads[-1]
        assert len(fetcher.calls) == 2

    @pytest.mark.asyncio
    async def test_all_waiters_receive_the_same_error(self, coordinator, fetcher):
        fetcher.gate = asyncio.Event()
        fetcher.error = FetchError.timeout(30)

        callers = [asyncio.create_task(coordinator.resolve("U2", False)) for _ in range(3)]
        await let_tasks_run()
        fetcher.gate.set()
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert all(isinstance(r, FetchError) for r in results)
        assert results[0] is results[1] is results[2]
        assert results[0].kind is ErrorKind.TIMEOUT
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_unexpected_fetcher_error_is_wrapped(self, coordinator, fetcher):
        fetcher.error = RuntimeError("boom")

        with pytest.raises(FetchError) as exc_info:
            await coordinator.resolve("U1", False)

        assert exc_info.value.kind is ErrorKind.UPSTREAM_UNAVAILABLE
        assert "boom" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_timeout_from_fetcher_maps_to_timeout_kind(self, coordinator, fetcher):
        fetcher.error = asyncio.TimeoutError()

        with pytest.raises(FetchError) as exc_info:
            await coordinator.resolve("U1", False)

        assert exc_info.value.kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_storage_read_fault_fails_without_fetching(self, clock):
        fetcher = FakeFetcher()
        coordinator = FetchCoordinator(
            store=BrokenStore(fail_reads=True), fetcher=fetcher, ttl=TTL, clock=clock
        )

        with pytest.raises(StorageError):
            await coordinator.resolve("U1", False)
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_storage_write_fault_returns_payload_in_error(self, clock):
        fetcher = FakeFetcher(make_payload("PROJ-9"))
        store = BrokenStore(fail_writes=True)
        coordinator = FetchCoordinator(store=store, fetcher=fetcher, ttl=TTL, clock=clock)

        with pytest.raises(CachePersistError) as exc_info:
            await coordinator.resolve("U1", False)

        assert exc_info.value.kind is ErrorKind.CACHE_WRITE_FAILED
        assert exc_info.value.payload == make_payload("PROJ-9")
        assert store.inner.get("U1") is None
        assert coordinator.in_flight_count == 0


class TestHousekeeping:
    def test_sweep_stale_uses_ttl_cutoff(self, store, fetcher):
        clock = FakeClock(T0 + TTL)
        coordinator = FetchCoordinator(store=store, fetcher=fetcher, ttl=TTL, clock=clock)
        store.put("old", "P", T0 - 1)
        store.put("edge", "P", T0)
        store.put("new", "P", T0 + 10)

        assert coordinator.sweep_stale() == 1
        assert store.get("old") is None
        assert store.get("edge") is not None

    def test_stats_include_store_and_counters(self, coordinator):
        stats = coordinator.get_stats()

        assert stats["backend"] == "sqlite"
        assert stats["ttl"] == TTL
        assert stats["in_flight"] == 0
        assert stats["fetcher"] == "fake"
