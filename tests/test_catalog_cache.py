"""Tests for the per-credential catalog cache.

Clock and fetch function are injected, so staleness and concurrent refresh
are exercised without sleeping or touching the network.
"""

from __future__ import annotations

import asyncio

import pytest

from podlister.activities.catalog_cache import CatalogCache, credential_scope
from podlister.errors import CatalogUnavailable
from podlister.models.contracts import CatalogEntry


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingFetcher:
    """Async fetch function returning a new catalog per call, or raising on demand."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail = False
        self.delay = 0.0
        self.empty = False

    async def __call__(self, api_key: str) -> list[CatalogEntry]:
        self.calls.append(api_key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("printify down")
        if self.empty:
            return []
        n = len(self.calls)
        return [CatalogEntry(id=n, title=f"Blueprint v{n}", brand="Brand", model=str(3000 + n))]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> RecordingFetcher:
    return RecordingFetcher()


@pytest.fixture
def cache(fetcher, clock) -> CatalogCache:
    return CatalogCache(fetcher, ttl_seconds=60, clock=clock)


class TestCredentialScope:
    def test_scope_is_stable_digest(self):
        assert credential_scope("abc") == credential_scope("abc")
        assert credential_scope("abc") != credential_scope("abd")
        assert "abc" not in credential_scope("abc")


class TestCatalogCache:
    @pytest.mark.asyncio
    async def test_miss_fetches_then_hit_does_not(self, cache, fetcher):
        first = await cache.get("key-a")
        second = await cache.get("key-a")

        assert fetcher.calls == ["key-a"]
        assert first is second
        assert first.entries[0].id == 1

    @pytest.mark.asyncio
    async def test_stale_snapshot_is_refreshed(self, cache, fetcher, clock):
        first = await cache.get("key-a")
        clock.now += 61
        second = await cache.get("key-a")

        assert len(fetcher.calls) == 2
        assert second is not first
        assert second.entries[0].id == 2
        assert second.fetched_at == clock.now

    @pytest.mark.asyncio
    async def test_within_window_is_fresh(self, cache, fetcher, clock):
        await cache.get("key-a")
        clock.now += 59.9
        await cache.get("key-a")
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_scopes_are_independent(self, cache, fetcher):
        a = await cache.get("key-a")
        b = await cache.get("key-b")
        assert fetcher.calls == ["key-a", "key-b"]
        assert a.entries != b.entries
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_raises_and_keeps_previous_snapshot(self, cache, fetcher, clock):
        original = await cache.get("key-a")
        clock.now += 61
        fetcher.fail = True

        with pytest.raises(CatalogUnavailable):
            await cache.get("key-a")

        assert cache.peek("key-a") is original

    @pytest.mark.asyncio
    async def test_failure_on_first_fetch_stores_nothing(self, cache, fetcher):
        fetcher.fail = True
        with pytest.raises(CatalogUnavailable, match="Check API Key"):
            await cache.get("key-a")
        assert cache.peek("key-a") is None

    @pytest.mark.asyncio
    async def test_stale_snapshot_not_served_after_failed_refresh(self, cache, fetcher, clock):
        await cache.get("key-a")
        clock.now += 61
        fetcher.fail = True
        for _ in range(2):
            with pytest.raises(CatalogUnavailable):
                await cache.get("key-a")
        assert len(fetcher.calls) == 3

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self, cache, fetcher):
        fetcher.delay = 0.01
        results = await asyncio.gather(*(cache.get("key-a") for _ in range(5)))
        assert len(fetcher.calls) == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_invalidate_one_scope(self, cache, fetcher):
        await cache.get("key-a")
        await cache.get("key-b")
        cache.invalidate("key-a")
        assert cache.peek("key-a") is None
        assert cache.peek("key-b") is not None

    @pytest.mark.asyncio
    async def test_invalidate_all(self, cache):
        await cache.get("key-a")
        cache.invalidate()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_max_scopes_evicts_oldest(self, fetcher, clock):
        cache = CatalogCache(fetcher, ttl_seconds=600, clock=clock, max_scopes=2)
        await cache.get("key-a")
        clock.now += 1
        await cache.get("key-b")
        clock.now += 1
        await cache.get("key-c")

        assert len(cache) == 2
        assert cache.peek("key-a") is None
        assert cache.peek("key-b") is not None
        assert cache.peek("key-c") is not None

    @pytest.mark.asyncio
    async def test_refresh_of_existing_scope_does_not_evict(self, fetcher, clock):
        cache = CatalogCache(fetcher, ttl_seconds=10, clock=clock, max_scopes=2)
        await cache.get("key-a")
        await cache.get("key-b")
        clock.now += 11
        await cache.get("key-a")
        assert cache.peek("key-b") is not None

    @pytest.mark.asyncio
    async def test_default_fetch_through_printify(self, catalog_cache, fake_printify):
        snapshot = await catalog_cache.get("test-token")
        assert [e.model for e in snapshot.entries] == ["5000", "3001", "18500", "18000", "11oz"]
        assert fake_printify.count("GET", "/catalog/blueprints.json") == 1

    @pytest.mark.asyncio
    async def test_printify_auth_error_becomes_catalog_unavailable(
        self, catalog_cache, fake_printify
    ):
        fake_printify.blueprint_status = 401
        with pytest.raises(CatalogUnavailable):
            await catalog_cache.get("test-token")

    @pytest.mark.asyncio
    async def test_empty_catalog_is_not_cached(self, cache, fetcher):
        fetcher.empty = True
        first = await cache.get("key-a")
        assert first.entries == ()
        assert cache.peek("key-a") is None

        fetcher.empty = False
        second = await cache.get("key-a")
        assert len(fetcher.calls) == 2
        assert second.entries[0].id == 2


class TestCatalogCacheLocks:
    """Per-scope refresh locks are dropped with the scope they guard."""

    @pytest.mark.asyncio
    async def test_failed_first_fetch_leaves_no_lock(self, cache, fetcher):
        fetcher.fail = True
        for key in ("key-a", "key-b", "key-c"):
            with pytest.raises(CatalogUnavailable):
                await cache.get(key)
        assert cache._locks == {}

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_lock_for_stored_scope(self, cache, fetcher, clock):
        await cache.get("key-a")
        clock.now += 61
        fetcher.fail = True
        with pytest.raises(CatalogUnavailable):
            await cache.get("key-a")
        assert credential_scope("key-a") in cache._locks

    @pytest.mark.asyncio
    async def test_invalidate_drops_locks(self, cache):
        await cache.get("key-a")
        await cache.get("key-b")

        cache.invalidate("key-a")
        assert set(cache._locks) == {credential_scope("key-b")}

        cache.invalidate()
        assert cache._locks == {}

    @pytest.mark.asyncio
    async def test_empty_fetch_leaves_no_lock(self, cache, fetcher):
        fetcher.empty = True
        await cache.get("key-a")
        assert cache._locks == {}
