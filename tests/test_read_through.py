"""Tests for read-through caching semantics."""

from unittest.mock import AsyncMock

import pytest

from app.adapters.cache.base import NullCacheStore
from app.adapters.cache.in_memory import InMemoryCacheStore
from app.services.read_through import ReadThroughCache


@pytest.mark.asyncio
async def test_miss_computes_and_populates_then_hit_skips_compute() -> None:
    cache = ReadThroughCache(InMemoryCacheStore(), default_ttl=60)
    compute = AsyncMock(return_value={"success": True, "data": [1]})

    first = await cache.get_or_compute("k", compute)
    second = await cache.get_or_compute("k", compute)

    assert first == second == {"success": True, "data": [1]}
    assert compute.await_count == 1
    assert cache.stats() == {"hits": 1, "misses": 1, "failures": 0}


@pytest.mark.asyncio
async def test_uses_default_ttl_unless_overridden() -> None:
    store = AsyncMock()
    store.get.return_value = None
    cache = ReadThroughCache(store, default_ttl=3600)

    await cache.get_or_compute("a", AsyncMock(return_value=1))
    await cache.get_or_compute("b", AsyncMock(return_value=2), ttl=5)

    assert store.set.await_args_list[0].args == ("a", 1, 3600)
    assert store.set.await_args_list[1].args == ("b", 2, 5)


@pytest.mark.asyncio
async def test_raising_store_behaves_like_a_miss() -> None:
    store = AsyncMock()
    store.get.side_effect = RuntimeError("boom")
    store.set.side_effect = RuntimeError("boom")
    cache = ReadThroughCache(store)
    compute = AsyncMock(return_value={"ok": True})

    assert await cache.get_or_compute("k", compute) == {"ok": True}
    assert await cache.get_or_compute("k", compute) == {"ok": True}

    assert compute.await_count == 2
    assert cache.stats()["failures"] == 4


@pytest.mark.asyncio
async def test_disabled_cache_always_computes() -> None:
    cache = ReadThroughCache(NullCacheStore())
    compute = AsyncMock(return_value=[1, 2])

    await cache.get_or_compute("k", compute)
    await cache.get_or_compute("k", compute)

    assert compute.await_count == 2


@pytest.mark.asyncio
async def test_compute_errors_propagate_and_nothing_is_cached() -> None:
    store = InMemoryCacheStore()
    cache = ReadThroughCache(store)

    with pytest.raises(LookupError):
        await cache.get_or_compute("k", AsyncMock(side_effect=LookupError("missing")))

    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_invalidate_reports_removed_count() -> None:
    store = InMemoryCacheStore()
    cache = ReadThroughCache(store)
    await store.set("chapters:1", {"v": 1}, 60)
    await store.set("chapters:2", {"v": 2}, 60)

    assert await cache.invalidate("chapters:*") == 2


@pytest.mark.asyncio
async def test_invalidate_swallows_store_failures() -> None:
    store = AsyncMock()
    store.delete_pattern.side_effect = RuntimeError("down")
    cache = ReadThroughCache(store)

    assert await cache.invalidate("chapters:*") == 0


@pytest.mark.asyncio
async def test_failures_count_raised_errors_not_reported_misses() -> None:
    store = AsyncMock()
    store.get.side_effect = [RuntimeError("boom"), None]
    store.set.return_value = False
    cache = ReadThroughCache(store)
    compute = AsyncMock(return_value={"ok": True})

    await cache.get_or_compute("k", compute)
    await cache.get_or_compute("k", compute)

    assert cache.stats() == {"hits": 0, "misses": 2, "failures": 1}
