"""Entity/relation extraction stage (optional enrichment with rule-based fallback)."""

from __future__ import annotations

import logging
from typing import cast

from sceneflow.config import Settings
from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import EnrichmentUnavailable, InvalidGraphError, StageExecutionError
from sceneflow.models.job import StageName
from sceneflow.pipeline.concurrency import ConcurrencyTracker
from sceneflow.pipeline.context import SceneContext
from sceneflow.pipeline.retry import RetryPolicy
from sceneflow.providers.enrichment.base import SemanticAnalyzer
from sceneflow.stages.base import Stage
from sceneflow.utils.entity_extractor import EntityExtractor, EntityExtractorConfig, SceneGraph

logger = logging.getLogger(__name__)


class ExtractionStage(Stage):
    name = StageName.EXTRACTION

    def __init__(
        self,
        settings: Settings,
        *,
        analyzer: SemanticAnalyzer | None = None,
        retry_policy: RetryPolicy | None = None,
        tracker: ConcurrencyTracker | None = None,
        extractor: EntityExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.analyzer = analyzer
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.tracker = tracker
        self.extractor = extractor or EntityExtractor(EntityExtractorConfig.from_settings(settings.extraction))

    def validate_input(self, context: SceneContext) -> bool:
        return context.get("scene") is not None and context.get("classification") is not None

    async def _analyze(self, text: str) -> object:
        assert self.analyzer is not None
        analyzer = self.analyzer
        if self.tracker is None:
            return await self.retry_policy.call(lambda: analyzer.analyze(text))
        async with self.tracker.acquire("enrichment"):
            return await self.retry_policy.call(lambda: analyzer.analyze(text))

    async def _enriched_graph(self, context: SceneContext) -> SceneGraph | None:
        scene = context["scene"]
        try:
            payload = await self._analyze(scene.text_span)
            return self.extractor.from_enrichment(payload)
        except (EnrichmentUnavailable, InvalidGraphError) as exc:
            code = getattr(exc, "error_code", None) or ErrorCode.ENRICHMENT_FAILED
            logger.warning(
                "extraction degraded (scene_id=%s, error_code=%s, error=%s)",
                scene.id,
                getattr(code, "value", code),
                exc,
            )
            return None

    async def execute(self, context: SceneContext) -> SceneContext:
        context = cast(SceneContext, dict(context))
        scene = context["scene"]
        archetype = context["classification"].archetype

        graph: SceneGraph | None = None
        degraded = False
        if self.analyzer is not None:
            graph = await self._enriched_graph(context)
            degraded = graph is None

        if graph is None:
            try:
                graph = self.extractor.extract(scene.text_span, archetype)
            except InvalidGraphError as exc:
                raise StageExecutionError(
                    self.name.value,
                    f"rule-based extraction produced an invalid graph: {exc}",
                    scene_index=context.get("scene_index"),
                    error_code=ErrorCode.EXTRACTION_FAILED,
                ) from exc

        scene.nodes = list(graph.nodes)
        scene.edges = list(graph.edges)
        scene.quality.extraction_degraded = degraded
        if degraded:
            scene.quality.warnings.append("extraction_degraded")
        if graph.placeholder:
            scene.quality.warnings.append("placeholder_graph")
        context["graph"] = graph
        context["extraction_degraded"] = degraded

        logger.info(
            "scene extracted (scene_id=%s, source=%s, nodes=%d, edges=%d, degraded=%s)",
            scene.id,
            graph.source,
            len(graph.nodes),
            len(graph.edges),
            degraded,
        )
        return context
