"""Per-scene processing stages."""

from sceneflow.stages.base import Stage
from sceneflow.stages.classification import ClassificationStage
from sceneflow.stages.extraction import ExtractionStage
from sceneflow.stages.layout import LayoutStage

__all__ = ["ClassificationStage", "ExtractionStage", "LayoutStage", "Stage"]
