"""Stage abstractions for per-scene pipeline execution."""

from __future__ import annotations

from abc import ABC, abstractmethod

from sceneflow.models.job import StageName
from sceneflow.pipeline.context import SceneContext


class Stage(ABC):
    """Per-scene pipeline stage."""

    name: StageName

    @abstractmethod
    async def execute(self, context: SceneContext) -> SceneContext:
        """Run the stage and return the updated context."""

    @abstractmethod
    def validate_input(self, context: SceneContext) -> bool:
        """Check the context carries what the stage needs."""
