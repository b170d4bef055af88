"""Per-job scene cache (bounded LRU, single flight per key).

Entries are keyed by a fingerprint of the scene text plus the configuration
that shapes scene output. Concurrent callers for the same key share one
computation: the first caller computes, later callers await its in-flight
result. Failed computations are never stored; waiters then retry themselves.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

from sceneflow.exceptions import PipelineCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


def scene_fingerprint(text: str, config: Mapping[str, Any] | None = None) -> str:
    payload = {
        "text": " ".join(str(text or "").split()),
        "config": dict(config or {}),
    }
    raw = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SceneCache(Generic[T]):
    def __init__(self, max_entries: int = 256) -> None:
        self.max_entries = max(1, int(max_entries))
        self._entries: OrderedDict[str, T] = OrderedDict()
        self._inflight: dict[str, asyncio.Future[T]] = {}
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def get(self, key: str) -> T | None:
        async with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def _store(self, key: str, value: T) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug("scene cache evict (key=%s, size=%d)", evicted[:12], len(self._entries))

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        *,
        should_store: Callable[[T], bool] | None = None,
    ) -> tuple[T, bool]:
        """Return (value, hit). `hit` is True when the value was produced by another caller."""
        while True:
            async with self._lock:
                if key in self._entries:
                    self._entries.move_to_end(key)
                    self.hits += 1
                    return self._entries[key], True
                future = self._inflight.get(key)
                if future is None:
                    future = asyncio.get_running_loop().create_future()
                    self._inflight[key] = future
                    break

            try:
                value = await asyncio.shield(future)
            except Exception:
                # Owner failed; try again (possibly as the new owner).
                continue
            self.hits += 1
            return value, True

        self.misses += 1
        try:
            value = await factory()
        except BaseException as exc:
            self._inflight.pop(key, None)
            if not future.done():
                future.set_exception(
                    exc if isinstance(exc, Exception) else PipelineCancelled("cache owner cancelled")
                )
                # Waiters observe the failure; mark it retrieved for the loop.
                future.exception()
            raise

        async with self._lock:
            if should_store is None or should_store(value):
                self._store(key, value)
            self._inflight.pop(key, None)
        if not future.done():
            future.set_result(value)
        return value, False
