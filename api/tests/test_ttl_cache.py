"""Tests for the in-memory TTL cache."""

import asyncio

import pytest

from stackfolio.adapters.ttl_cache import CacheKeyError, TTLCache


def test_set_get_and_expiry(clock) -> None:
    cache = TTLCache("t", 10, clock=clock)
    cache.set("k", {"v": 1})
    assert cache.get("k") == {"v": 1}

    clock.advance(9.9)
    assert cache.get("k") == {"v": 1}

    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default(clock) -> None:
    cache = TTLCache("t", 10, clock=clock)
    cache.set("short", 1, ttl_seconds=1)
    cache.set("long", 2)
    clock.advance(2)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_delete_and_flush(clock) -> None:
    cache = TTLCache("t", 10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    assert len(cache) == 2

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    assert cache.get("a") is None

    cache.flush()
    assert cache.get("b") is None
    assert len(cache) == 0


@pytest.mark.parametrize("key", ["", "   ", None, 7])
def test_invalid_keys_raise_cache_key_error(key) -> None:
    cache = TTLCache("t", 10)
    with pytest.raises(CacheKeyError):
        cache.get(key)
    with pytest.raises(LookupError):
        cache.set(key, 1)


def test_namespace_must_be_non_empty() -> None:
    with pytest.raises(ValueError):
        TTLCache("", 10)


@pytest.mark.asyncio
async def test_get_or_load_is_single_flight() -> None:
    cache = TTLCache("t", 60)
    calls = 0
    release = asyncio.Event()

    async def loader():
        nonlocal calls
        calls += 1
        await release.wait()
        return {"value": 42}

    tasks = [asyncio.create_task(cache.get_or_load("k", loader)) for _ in range(5)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*tasks)

    assert calls == 1
    assert results == [{"value": 42}] * 5
    assert await cache.get_or_load("k", loader) == {"value": 42}
    assert calls == 1


@pytest.mark.asyncio
async def test_get_or_load_does_not_store_none() -> None:
    cache = TTLCache("t", 60)
    calls = 0

    async def loader():
        nonlocal calls
        calls += 1
        return None

    assert await cache.get_or_load("k", loader) is None
    assert await cache.get_or_load("k", loader) is None
    assert calls == 2


@pytest.mark.asyncio
async def test_get_or_load_error_reaches_every_waiter_and_is_not_cached() -> None:
    cache = TTLCache("t", 60)
    calls = 0

    async def failing():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0)
        raise RuntimeError("upstream exploded")

    results = await asyncio.gather(
        cache.get_or_load("k", failing),
        cache.get_or_load("k", failing),
        return_exceptions=True,
    )
    assert calls == 1
    assert all(isinstance(result, RuntimeError) for result in results)

    async def working():
        return "ok"

    assert await cache.get_or_load("k", working) == "ok"


@pytest.mark.asyncio
async def test_get_or_load_rejects_invalid_key() -> None:
    cache = TTLCache("t", 60)

    async def loader():
        return 1

    with pytest.raises(CacheKeyError):
        await cache.get_or_load("", loader)


@pytest.mark.asyncio
async def test_get_or_load_ttl_can_depend_on_loaded_value(clock) -> None:
    cache = TTLCache("t", 60, clock=clock)

    async def degraded():
        return {"status": "partial"}

    def ttl_for(value):
        return 5 if value["status"] == "partial" else None

    await cache.get_or_load("k", degraded, ttl_for=ttl_for)
    clock.advance(5)
    assert cache.get("k") is None

    async def complete():
        return {"status": "ok"}

    await cache.get_or_load("k", complete, ttl_for=ttl_for)
    clock.advance(59)
    assert cache.get("k") == {"status": "ok"}
