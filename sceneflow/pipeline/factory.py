"""Pipeline factories."""

from __future__ import annotations

from sceneflow.config import Settings
from sceneflow.models.scene import Scene
from sceneflow.pipeline.concurrency import ConcurrencyTracker
from sceneflow.pipeline.context import ProgressReporter
from sceneflow.pipeline.executor import SceneExecutor
from sceneflow.pipeline.orchestrator import PipelineOrchestrator
from sceneflow.pipeline.retry import RetryPolicy
from sceneflow.providers.enrichment.base import SemanticAnalyzer
from sceneflow.providers.registry import get_semantic_analyzer
from sceneflow.services.scene_cache import SceneCache
from sceneflow.stages import ClassificationStage, ExtractionStage, LayoutStage


def create_scene_pipeline(
    settings: Settings,
    *,
    analyzer: SemanticAnalyzer | None = None,
    reporter: ProgressReporter | None = None,
    cache: SceneCache[Scene] | None = None,
    tracker: ConcurrencyTracker | None = None,
) -> PipelineOrchestrator:
    """Build the standard pipeline: classification, extraction (optionally enriched), layout.

    When `analyzer` is None, enrichment is configured from `settings.enrichment`
    (disabled by default, in which case extraction is purely rule-based).
    """
    if analyzer is None:
        analyzer = get_semantic_analyzer(
            settings.enrichment_config(),
            max_entities=int(settings.extraction.max_nodes),
        )
    tracker = tracker or ConcurrencyTracker.from_settings(settings)
    stages = [
        ClassificationStage(settings),
        ExtractionStage(
            settings,
            analyzer=analyzer,
            retry_policy=RetryPolicy.from_settings(settings),
            tracker=tracker,
        ),
        LayoutStage(settings),
    ]
    return PipelineOrchestrator(
        settings,
        SceneExecutor(stages),
        tracker=tracker,
        cache=cache,
        reporter=reporter,
        analyzer=analyzer,
    )
