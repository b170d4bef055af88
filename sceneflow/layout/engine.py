"""Zero-overlap layout engine: initial placement, collision resolution, edge routing."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from sceneflow.config import LayoutConfig
from sceneflow.exceptions import InvalidGraphError
from sceneflow.layout.collision import resolve_collisions
from sceneflow.layout.geometry import bounding_box, count_overlaps, translate
from sceneflow.layout.placement import initial_placement as place_initial
from sceneflow.layout.routing import count_edge_crossings, route_edges
from sceneflow.models.scene import Archetype, Edge, LayoutQuality, LayoutStatus, Node
from sceneflow.utils.entity_extractor import validate_graph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Canvas:
    width: float = 1920.0
    height: float = 1080.0


@dataclass(frozen=True)
class LayoutOptions:
    margin: float = 50.0
    min_spacing: float = 40.0
    rank_separation: float = 100.0
    node_separation: float = 60.0
    max_iterations: int = 300
    separation_multiplier: float = 2.0
    damping: float = 0.9
    log_every: int = 50
    parallel_edge_offset: float = 18.0

    @classmethod
    def from_settings(cls, cfg: LayoutConfig) -> "LayoutOptions":
        return cls(
            margin=float(cfg.margin),
            min_spacing=float(cfg.min_spacing),
            rank_separation=float(cfg.rank_separation),
            node_separation=float(cfg.node_separation),
            max_iterations=int(cfg.max_iterations),
            separation_multiplier=float(cfg.separation_multiplier),
            damping=float(cfg.damping),
            log_every=int(cfg.log_every),
            parallel_edge_offset=float(cfg.parallel_edge_offset),
        )


@dataclass
class LayoutResult:
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    quality: LayoutQuality = field(default_factory=LayoutQuality)
    obstructed_edges: int = 0


class ZeroOverlapLayoutEngine:
    """Place nodes so no two padded bounding boxes intersect.

    Never raises on incomplete resolution: after `max_iterations` the best
    layout seen is returned with `LayoutStatus.INCOMPLETE` and the residual
    overlap count. Input nodes/edges are not mutated.
    """

    def __init__(self, options: LayoutOptions | None = None) -> None:
        self.options = options or LayoutOptions()

    def layout(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        archetype: Archetype,
        canvas: Canvas | None = None,
        *,
        initial_placement: bool = True,
        should_cancel: Callable[[], bool] | None = None,
    ) -> LayoutResult:
        opts = self.options
        canvas = canvas or Canvas()
        placed = [copy.deepcopy(n) for n in nodes]
        routed = [copy.deepcopy(e) for e in edges]
        validate_graph(placed, routed)

        if not placed:
            return LayoutResult(quality=LayoutQuality(status=LayoutStatus.COMPLETE))

        if initial_placement:
            place_initial(
                placed,
                routed,
                archetype,
                rank_separation=opts.rank_separation,
                node_separation=opts.node_separation,
                max_width=max(1.0, canvas.width - 2 * opts.margin),
            )
        else:
            missing = [n.id for n in placed if not n.positioned]
            if missing:
                raise InvalidGraphError(f"nodes without positions: {missing}")

        resolution = resolve_collisions(
            placed,
            min_spacing=opts.min_spacing,
            separation_multiplier=opts.separation_multiplier,
            damping=opts.damping,
            max_iterations=opts.max_iterations,
            log_every=opts.log_every,
            should_cancel=should_cancel,
        )

        box = bounding_box(placed)
        translate(placed, opts.margin - box.x, opts.margin - box.y)
        fits_canvas = (
            box.width <= canvas.width - 2 * opts.margin
            and box.height <= canvas.height - 2 * opts.margin
        )

        obstructed = route_edges(placed, routed, parallel_offset=opts.parallel_edge_offset)
        residual = count_overlaps(placed, opts.min_spacing)
        quality = LayoutQuality(
            status=LayoutStatus.COMPLETE if residual == 0 else LayoutStatus.INCOMPLETE,
            residual_overlap_count=residual,
            iterations=resolution.iterations,
            edge_crossings=count_edge_crossings(routed),
            fits_canvas=fits_canvas,
        )

        if residual:
            logger.warning(
                "layout incomplete (archetype=%s, nodes=%d, residual_overlaps=%d, iterations=%d)",
                archetype.value,
                len(placed),
                residual,
                resolution.iterations,
            )
        else:
            logger.debug(
                "layout done (archetype=%s, nodes=%d, initial_overlaps=%d, iterations=%d, crossings=%d)",
                archetype.value,
                len(placed),
                resolution.initial_overlaps,
                resolution.iterations,
                quality.edge_crossings,
            )
        if not fits_canvas:
            logger.info(
                "layout exceeds canvas (width=%.0f, height=%.0f, canvas=%.0fx%.0f)",
                box.width,
                box.height,
                canvas.width,
                canvas.height,
            )
        return LayoutResult(nodes=placed, edges=routed, quality=quality, obstructed_edges=obstructed)
