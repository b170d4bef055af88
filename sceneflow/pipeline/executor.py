"""Per-scene stage executor."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import cast

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import (
    ConfigurationError,
    PipelineCancelled,
    ProviderError,
    StageExecutionError,
)
from sceneflow.models.job import StageName
from sceneflow.pipeline.context import SceneContext
from sceneflow.stages.base import Stage

StageCompleteHook = Callable[[StageName, SceneContext], Awaitable[None]]


def error_code_value(code: ErrorCode | str | None) -> str | None:
    if code is None:
        return None
    if isinstance(code, ErrorCode):
        return code.value
    return str(code)


def infer_error_code(stage: StageName, exc: BaseException | None) -> str:
    if isinstance(exc, StageExecutionError) and exc.error_code is not None:
        return str(error_code_value(exc.error_code))
    if isinstance(exc, ProviderError) and exc.error_code is not None:
        return str(error_code_value(exc.error_code))
    if isinstance(exc, PipelineCancelled):
        return ErrorCode.CANCELLED.value
    if isinstance(exc, ConfigurationError):
        return ErrorCode.INVALID_TRANSCRIPT.value

    if stage == StageName.CLASSIFICATION:
        return ErrorCode.CLASSIFICATION_FAILED.value
    if stage == StageName.EXTRACTION:
        msg = str(exc or "").lower()
        if "timeout" in msg or "timed out" in msg:
            return ErrorCode.ENRICHMENT_TIMEOUT.value
        return ErrorCode.EXTRACTION_FAILED.value
    if stage == StageName.LAYOUT:
        return ErrorCode.LAYOUT_FAILED.value
    return ErrorCode.UNKNOWN.value


class SceneExecutor:
    """Runs the per-scene stages in order, checking cancellation between them."""

    def __init__(self, stages: list[Stage]):
        self.stages = stages

    async def run(
        self,
        initial_context: SceneContext,
        *,
        on_stage_complete: StageCompleteHook | None = None,
    ) -> SceneContext:
        context = cast(SceneContext, dict(initial_context))
        token = context.get("cancel_token")
        scene_index = context.get("scene_index")
        last_completed: StageName | None = None

        for stage in self.stages:
            if token is not None:
                token.raise_if_cancelled()
            if not stage.validate_input(context):
                raise StageExecutionError(
                    stage.name.value,
                    "input validation failed",
                    scene_index=scene_index,
                    error_code=infer_error_code(stage.name, None),
                    last_completed_stage=last_completed.value if last_completed else None,
                )
            try:
                context = await stage.execute(context)
            except PipelineCancelled:
                raise
            except StageExecutionError as exc:
                if exc.error_code is None:
                    exc.error_code = infer_error_code(stage.name, exc.__cause__)
                if exc.last_completed_stage is None and last_completed is not None:
                    exc.last_completed_stage = last_completed.value
                if exc.scene_index is None:
                    exc.scene_index = scene_index
                raise
            except Exception as exc:
                raise StageExecutionError(
                    stage.name.value,
                    str(exc) or type(exc).__name__,
                    scene_index=scene_index,
                    error_code=infer_error_code(stage.name, exc),
                    last_completed_stage=last_completed.value if last_completed else None,
                ) from exc

            last_completed = stage.name
            if on_stage_complete is not None:
                await on_stage_complete(stage.name, context)
        return context
