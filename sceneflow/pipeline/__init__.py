"""Scene pipeline: per-scene executor, job orchestrator and factory.

Stages import `sceneflow.pipeline.context` for type hints, so the public names
here are resolved lazily to keep `sceneflow.stages` importable on its own.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sceneflow.pipeline.executor import SceneExecutor
    from sceneflow.pipeline.factory import create_scene_pipeline
    from sceneflow.pipeline.orchestrator import PipelineOrchestrator

_LAZY_EXPORTS = {
    "SceneExecutor": "sceneflow.pipeline.executor",
    "PipelineOrchestrator": "sceneflow.pipeline.orchestrator",
    "create_scene_pipeline": "sceneflow.pipeline.factory",
}

__all__ = sorted(_LAZY_EXPORTS)


def __getattr__(name: str) -> Any:
    module = _LAZY_EXPORTS.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(import_module(module), name)
