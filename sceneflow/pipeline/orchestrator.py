"""Job-level pipeline orchestrator (segment once, then process scenes in parallel)."""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections.abc import Sequence

from sceneflow.config import Settings
from sceneflow.exceptions import PipelineCancelled, StageExecutionError
from sceneflow.models.job import SCENE_STAGE_ORDER, PipelineFailure, PipelineResult, StageName
from sceneflow.models.scene import Scene
from sceneflow.models.transcript import TranscriptSegment
from sceneflow.pipeline.concurrency import CancellationToken, ConcurrencyTracker
from sceneflow.pipeline.context import ProgressEvent, ProgressReporter, SceneContext
from sceneflow.pipeline.executor import SceneExecutor, error_code_value, infer_error_code
from sceneflow.services.scene_cache import SceneCache, scene_fingerprint
from sceneflow.utils.scene_segmenter import SceneSegmenter, SceneSegmenterConfig

logger = logging.getLogger(__name__)


class _JobProgress:
    """Job-wide progress; percent never goes backwards."""

    def __init__(self, *, total_scenes: int, reporter: ProgressReporter | None) -> None:
        self._reporter = reporter
        self._lock = asyncio.Lock()
        # One unit for segmentation plus one per scene stage.
        self._units = 1 + max(0, int(total_scenes)) * len(SCENE_STAGE_ORDER)
        self._done = 0
        self._last_percent = 0

    async def advance(
        self,
        stage: StageName,
        scene_index: int | None,
        *,
        units: int = 1,
        message: str = "",
    ) -> None:
        async with self._lock:
            self._done = min(self._units, self._done + max(0, int(units)))
            pct = int(self._done * 100 / self._units)
            pct = max(self._last_percent, min(100, pct))
            self._last_percent = pct
        if self._reporter is None:
            return
        event = ProgressEvent(stage=stage, scene_index=scene_index, percent=pct, message=message)
        try:
            await self._reporter.report(event)
        except Exception as exc:
            logger.warning("progress report failed (stage=%s, scene_index=%s, error=%s)", stage.value, scene_index, exc)


class _JobState:
    def __init__(self) -> None:
        self.first_failed_index: int | None = None

    def record_failure(self, index: int) -> None:
        if self.first_failed_index is None or index < self.first_failed_index:
            self.first_failed_index = index

    def skip(self, index: int) -> bool:
        return self.first_failed_index is not None and index > self.first_failed_index


class _Skipped:
    """Marker for scenes not started because an earlier scene failed."""


_SKIPPED = _Skipped()


def _apply_result(shell: Scene, computed: Scene, *, cached: bool) -> Scene:
    scene = copy.deepcopy(computed)
    scene.id = shell.id
    scene.start_ms = shell.start_ms
    scene.duration_ms = shell.duration_ms
    scene.quality.cached = bool(cached)
    return scene


class PipelineOrchestrator:
    """Transcript in, ordered laid-out scenes out.

    Segmentation errors are raised to the caller. Scene failures are returned as
    `PipelineResult.failure` together with the scenes completed before the failing one.
    """

    def __init__(
        self,
        settings: Settings,
        executor: SceneExecutor,
        *,
        segmenter: SceneSegmenter | None = None,
        tracker: ConcurrencyTracker | None = None,
        cache: SceneCache[Scene] | None = None,
        reporter: ProgressReporter | None = None,
        analyzer: object | None = None,
    ) -> None:
        self.settings = settings
        self.executor = executor
        self.segmenter = segmenter or SceneSegmenter(
            SceneSegmenterConfig.from_settings(
                settings.segmentation,
                pattern_cap=settings.classifier.pattern_bonus_cap,
            )
        )
        self.tracker = tracker or ConcurrencyTracker.from_settings(settings)
        self.cache = cache
        self.reporter = reporter
        self._analyzer = analyzer

    def _job_cache(self) -> SceneCache[Scene] | None:
        if self.cache is not None:
            return self.cache
        if not self.settings.cache.enabled:
            return None
        return SceneCache(max_entries=int(self.settings.cache.max_entries))

    async def _compute(
        self,
        index: int,
        shell: Scene,
        token: CancellationToken,
        progress: _JobProgress,
    ) -> Scene:
        async def _on_stage_complete(stage: StageName, context: SceneContext) -> None:
            await progress.advance(stage, index, message=f"{context['scene'].id} {stage.value} done")

        context: SceneContext = {
            "scene_index": index,
            "scene": copy.deepcopy(shell),
            "cancel_token": token,
        }
        result = await self.executor.run(context, on_stage_complete=_on_stage_complete)
        return result["scene"]

    async def _process(
        self,
        index: int,
        shell: Scene,
        *,
        token: CancellationToken,
        cache: SceneCache[Scene] | None,
        progress: _JobProgress,
        state: _JobState,
        fingerprint_config: dict,
    ) -> Scene | _Skipped:
        async with self.tracker.acquire("scene") as slot:
            token.raise_if_cancelled()
            if state.skip(index):
                logger.info("scene skipped after earlier failure (scene_index=%d)", index)
                return _SKIPPED
            logger.debug("scene start (scene_index=%d, active=%d, max=%d)", index, slot.active, slot.max)

            try:
                if cache is None:
                    computed = await self._compute(index, shell, token, progress)
                    return _apply_result(shell, computed, cached=False)

                key = scene_fingerprint(shell.text_span, fingerprint_config)
                computed, hit = await cache.get_or_compute(
                    key,
                    lambda: self._compute(index, shell, token, progress),
                    should_store=lambda s: not s.quality.extraction_degraded,
                )
            except StageExecutionError:
                state.record_failure(index)
                raise

            if hit:
                logger.info("scene cache hit (scene_index=%d, key=%s)", index, key[:12])
                await progress.advance(
                    StageName.LAYOUT,
                    index,
                    units=len(SCENE_STAGE_ORDER),
                    message=f"{shell.id} cached",
                )
            return _apply_result(shell, computed, cached=hit)

    async def run(
        self,
        transcript: Sequence[TranscriptSegment],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineResult:
        token = cancel_token or CancellationToken()
        started = time.perf_counter()

        shells = self.segmenter.segment(transcript)
        progress = _JobProgress(total_scenes=len(shells), reporter=self.reporter)
        await progress.advance(StageName.SEGMENTATION, None, message=f"{len(shells)} scenes")

        cache = self._job_cache()
        state = _JobState()
        fingerprint_config = self.settings.fingerprint_payload()
        tasks = [
            asyncio.create_task(
                self._process(
                    index,
                    shell,
                    token=token,
                    cache=cache,
                    progress=progress,
                    state=state,
                    fingerprint_config=fingerprint_config,
                )
            )
            for index, shell in enumerate(shells)
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        result = PipelineResult(total_scenes=len(shells))
        failure_exc: StageExecutionError | None = None
        failure_index: int | None = None
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, StageExecutionError):
                if failure_index is None:
                    failure_index, failure_exc = index, outcome
            elif isinstance(outcome, PipelineCancelled):
                result.cancelled = True
            elif isinstance(outcome, BaseException):
                raise outcome

        # Completed scenes form a chronological prefix: stop at the first gap.
        for index, outcome in enumerate(outcomes):
            if failure_index is not None and index >= failure_index:
                break
            if not isinstance(outcome, Scene):
                break
            result.scenes.append(outcome)

        if failure_exc is not None and failure_index is not None:
            result.failure = self._failure(failure_index, failure_exc)
        if token.is_cancelled():
            result.cancelled = True

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if result.failure is not None:
            logger.warning(
                "pipeline failed (scene_index=%d, stage=%s, error_code=%s, completed=%d/%d, elapsed_ms=%d)",
                result.failure.scene_index,
                result.failure.stage.value,
                result.failure.error_code,
                len(result.scenes),
                len(shells),
                elapsed_ms,
            )
        elif result.cancelled:
            logger.info(
                "pipeline cancelled (reason=%s, completed=%d/%d, elapsed_ms=%d)",
                token.reason,
                len(result.scenes),
                len(shells),
                elapsed_ms,
            )
        else:
            logger.info(
                "pipeline done (scenes=%d, degraded=%d, cache_hits=%d, peak_scene_workers=%d, elapsed_ms=%d)",
                len(result.scenes),
                sum(1 for s in result.scenes if s.quality.extraction_degraded),
                sum(1 for s in result.scenes if s.quality.cached),
                self.tracker.peak("scene"),
                elapsed_ms,
            )
        return result

    @staticmethod
    def _failure(index: int, exc: StageExecutionError) -> PipelineFailure:
        try:
            stage = StageName(exc.stage)
        except ValueError:
            stage = SCENE_STAGE_ORDER[0]
        last: StageName | None = None
        if exc.last_completed_stage:
            last = StageName(exc.last_completed_stage)
        return PipelineFailure(
            scene_index=index,
            stage=stage,
            last_completed_stage=last,
            error_code=error_code_value(exc.error_code) or infer_error_code(stage, exc.__cause__),
            message=exc.message,
        )

    async def close(self) -> None:
        close = getattr(self._analyzer, "close", None)
        if close is not None:
            await close()

