"""Zero-overlap layout stage."""

from __future__ import annotations

import asyncio
import logging
from typing import cast

from sceneflow.config import Settings
from sceneflow.layout.engine import Canvas, LayoutOptions, ZeroOverlapLayoutEngine
from sceneflow.models.job import StageName
from sceneflow.pipeline.context import SceneContext
from sceneflow.stages.base import Stage

logger = logging.getLogger(__name__)


class LayoutStage(Stage):
    """Runs the CPU-bound layout engine in a worker thread.

    Never retried: incomplete resolution is reported through
    `scene.quality.layout`, not raised.
    """

    name = StageName.LAYOUT

    def __init__(self, settings: Settings, engine: ZeroOverlapLayoutEngine | None = None) -> None:
        self.settings = settings
        self.engine = engine or ZeroOverlapLayoutEngine(LayoutOptions.from_settings(settings.layout))
        self.canvas = Canvas(
            width=float(settings.layout.canvas_width),
            height=float(settings.layout.canvas_height),
        )

    def validate_input(self, context: SceneContext) -> bool:
        scene = context.get("scene")
        return scene is not None and len(scene.nodes) >= 1

    async def execute(self, context: SceneContext) -> SceneContext:
        context = cast(SceneContext, dict(context))
        scene = context["scene"]
        token = context.get("cancel_token")

        result = await asyncio.to_thread(
            self.engine.layout,
            scene.nodes,
            scene.edges,
            scene.archetype,
            self.canvas,
            should_cancel=token.is_cancelled if token is not None else None,
        )

        scene.nodes = result.nodes
        scene.edges = result.edges
        scene.quality.layout = result.quality
        if not result.quality.is_complete:
            scene.quality.warnings.append("layout_incomplete")
        if not result.quality.fits_canvas:
            scene.quality.warnings.append("layout_exceeds_canvas")
        context["layout"] = result

        logger.info(
            "scene laid out (scene_id=%s, status=%s, residual_overlaps=%d, iterations=%d, crossings=%d)",
            scene.id,
            result.quality.status.value,
            result.quality.residual_overlap_count,
            result.quality.iterations,
            result.quality.edge_crossings,
        )
        return context
