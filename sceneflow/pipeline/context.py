"""Pipeline context typing and progress reporting.

Stages share a per-scene context dict. This module defines the stable, known
keys, plus the progress-event contract exposed to external consumers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypedDict

from sceneflow.models.job import StageName
from sceneflow.models.scene import ClassificationResult, Scene

if TYPE_CHECKING:
    from sceneflow.layout.engine import LayoutResult
    from sceneflow.pipeline.concurrency import CancellationToken
    from sceneflow.utils.entity_extractor import SceneGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    stage: StageName
    scene_index: int | None
    percent: int
    message: str = ""


class ProgressReporter(Protocol):
    async def report(self, event: ProgressEvent) -> None: ...


class QueueProgressReporter:
    """Buffered progress channel; `report` never blocks the producer.

    When `maxsize` is reached the oldest buffered event is dropped.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(0, int(maxsize)))
        self.dropped = 0
        self._closed = False

    def _put(self, item: object) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()
                self.dropped += 1

    async def report(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._put(self._CLOSED)

    async def events(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            assert isinstance(item, ProgressEvent)
            yield item

    def drain(self) -> list[ProgressEvent]:
        """Return buffered events without waiting."""
        out: list[ProgressEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if isinstance(item, ProgressEvent):
                out.append(item)
        return out


class SceneContext(TypedDict, total=False):
    scene_index: int
    scene: Scene
    cancel_token: CancellationToken

    classification: ClassificationResult
    graph: SceneGraph
    extraction_degraded: bool
    layout: LayoutResult
