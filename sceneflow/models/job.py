"""Pipeline job models (stage names, failures, results)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from sceneflow.models.scene import Scene


class StageName(str, Enum):
    SEGMENTATION = "segmentation"
    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"
    LAYOUT = "layout"


# Per-scene stage order (segmentation runs once per job before these).
SCENE_STAGE_ORDER: tuple[StageName, ...] = (
    StageName.CLASSIFICATION,
    StageName.EXTRACTION,
    StageName.LAYOUT,
)


@dataclass
class PipelineFailure:
    scene_index: int
    stage: StageName
    last_completed_stage: StageName | None
    error_code: str
    message: str


@dataclass
class PipelineResult:
    scenes: list[Scene] = field(default_factory=list)
    total_scenes: int = 0
    failure: PipelineFailure | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None and not self.cancelled
