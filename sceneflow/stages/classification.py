"""Diagram archetype classification stage."""

from __future__ import annotations

import logging
from typing import cast

from sceneflow.config import Settings
from sceneflow.models.job import StageName
from sceneflow.pipeline.context import SceneContext
from sceneflow.stages.base import Stage
from sceneflow.utils.diagram_classifier import DiagramClassifier, DiagramClassifierConfig

logger = logging.getLogger(__name__)


class ClassificationStage(Stage):
    name = StageName.CLASSIFICATION

    def __init__(self, settings: Settings, classifier: DiagramClassifier | None = None) -> None:
        self.settings = settings
        self.classifier = classifier or DiagramClassifier(DiagramClassifierConfig.from_settings(settings.classifier))

    def validate_input(self, context: SceneContext) -> bool:
        return context.get("scene") is not None

    async def execute(self, context: SceneContext) -> SceneContext:
        context = cast(SceneContext, dict(context))
        scene = context["scene"]
        result = self.classifier.classify(scene.text_span)

        scene.archetype = result.archetype
        scene.confidence = float(result.confidence)
        scene.quality.low_confidence = bool(result.low_confidence)
        if result.low_confidence:
            scene.quality.warnings.append("classification_low_confidence")
        context["classification"] = result

        logger.info(
            "scene classified (scene_id=%s, archetype=%s, confidence=%.2f, low_confidence=%s)",
            scene.id,
            result.archetype.value,
            result.confidence,
            result.low_confidence,
        )
        return context
