"""Core data models for SceneFlow."""

from sceneflow.models.job import PipelineFailure, PipelineResult, StageName
from sceneflow.models.scene import (
    Archetype,
    ClassificationResult,
    Edge,
    LayoutQuality,
    LayoutStatus,
    Node,
    Scene,
    SceneQuality,
)
from sceneflow.models.transcript import TranscriptSegment

__all__ = [
    "Archetype",
    "ClassificationResult",
    "Edge",
    "LayoutQuality",
    "LayoutStatus",
    "Node",
    "PipelineFailure",
    "PipelineResult",
    "Scene",
    "SceneQuality",
    "StageName",
    "TranscriptSegment",
]
