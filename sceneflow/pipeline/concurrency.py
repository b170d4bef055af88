"""Cancellation and worker-pool gating for per-scene tasks."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Literal

from sceneflow.config import Settings
from sceneflow.exceptions import PipelineCancelled

WorkType = Literal["scene", "enrichment"]


class CancellationToken:
    """Job-level cancellation flag, safe to poll from layout worker threads."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled(self.reason or "cancelled")


@dataclass(frozen=True)
class ConcurrencyState:
    active: int
    max: int


class ConcurrencyTracker:
    """Bounded worker pools by work type, with active counts for logging."""

    def __init__(self, *, maxima: dict[WorkType, int]) -> None:
        self._lock = asyncio.Lock()
        self._max: dict[WorkType, int] = {k: max(1, int(v)) for k, v in maxima.items()}
        self._active: dict[WorkType, int] = {k: 0 for k in maxima}
        self._peak: dict[WorkType, int] = {k: 0 for k in maxima}
        self._semaphores: dict[WorkType, asyncio.Semaphore] = {
            k: asyncio.Semaphore(v) for k, v in self._max.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConcurrencyTracker":
        return cls(
            maxima={
                "scene": int(settings.concurrency.scene_workers),
                "enrichment": int(settings.concurrency.enrichment),
            }
        )

    def peak(self, work: WorkType) -> int:
        return int(self._peak.get(work, 0))

    async def snapshot(self, work: WorkType) -> ConcurrencyState:
        async with self._lock:
            return ConcurrencyState(active=int(self._active.get(work, 0)), max=int(self._max.get(work, 1)))

    @asynccontextmanager
    async def acquire(self, work: WorkType) -> AsyncIterator[ConcurrencyState]:
        semaphore = self._semaphores[work]
        async with semaphore:
            async with self._lock:
                self._active[work] = int(self._active.get(work, 0)) + 1
                self._peak[work] = max(self._peak.get(work, 0), self._active[work])
                state = ConcurrencyState(active=int(self._active[work]), max=int(self._max[work]))
            try:
                yield state
            finally:
                async with self._lock:
                    self._active[work] = max(0, int(self._active.get(work, 0)) - 1)
