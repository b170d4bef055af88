from __future__ import annotations

import asyncio

import pytest

from sceneflow.services.scene_cache import SceneCache, scene_fingerprint


def test_fingerprint_normalizes_whitespace_and_tracks_config() -> None:
    assert scene_fingerprint("a  b\nc", {"k": 1}) == scene_fingerprint(" a b c ", {"k": 1})
    assert scene_fingerprint("a b c", {"k": 1}) != scene_fingerprint("a b c", {"k": 2})
    assert scene_fingerprint("a b c") != scene_fingerprint("a b d")


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_computation() -> None:
    cache: SceneCache[str] = SceneCache(max_entries=4)
    release = asyncio.Event()
    calls = 0

    async def _factory() -> str:
        nonlocal calls
        calls += 1
        await release.wait()
        return "value"

    first = asyncio.create_task(cache.get_or_compute("k", _factory))
    second = asyncio.create_task(cache.get_or_compute("k", _factory))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(first, second)

    assert calls == 1
    assert sorted(hit for _value, hit in results) == [False, True]
    assert all(value == "value" for value, _hit in results)
    assert cache.misses == 1 and cache.hits == 1


@pytest.mark.asyncio
async def test_lru_eviction() -> None:
    cache: SceneCache[int] = SceneCache(max_entries=2)

    async def _const(v: int):
        return v

    await cache.get_or_compute("a", lambda: _const(1))
    await cache.get_or_compute("b", lambda: _const(2))
    assert await cache.get("a") == 1
    await cache.get_or_compute("c", lambda: _const(3))

    assert "a" in cache and "c" in cache
    assert "b" not in cache
    assert len(cache) == 2
    assert cache.evictions == 1


@pytest.mark.asyncio
async def test_failed_computation_is_not_cached() -> None:
    cache: SceneCache[str] = SceneCache()

    async def _boom() -> str:
        raise ValueError("boom")

    async def _ok() -> str:
        return "ok"

    with pytest.raises(ValueError):
        await cache.get_or_compute("k", _boom)
    assert "k" not in cache
    value, hit = await cache.get_or_compute("k", _ok)
    assert (value, hit) == ("ok", False)


@pytest.mark.asyncio
async def test_waiter_recomputes_when_owner_fails() -> None:
    cache: SceneCache[str] = SceneCache()
    release = asyncio.Event()

    async def _failing() -> str:
        await release.wait()
        raise RuntimeError("owner failed")

    async def _ok() -> str:
        return "recovered"

    owner = asyncio.create_task(cache.get_or_compute("k", _failing))
    await asyncio.sleep(0)
    waiter = asyncio.create_task(cache.get_or_compute("k", _ok))
    await asyncio.sleep(0)
    release.set()

    with pytest.raises(RuntimeError):
        await owner
    assert await waiter == ("recovered", False)


@pytest.mark.asyncio
async def test_should_store_filter() -> None:
    cache: SceneCache[str] = SceneCache()

    async def _degraded() -> str:
        return "degraded"

    await cache.get_or_compute("k", _degraded, should_store=lambda v: v != "degraded")
    assert "k" not in cache
