"""Iterative force-directed collision resolution."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sceneflow.exceptions import PipelineCancelled
from sceneflow.layout.geometry import EPSILON, overlapping_pairs
from sceneflow.models.scene import Node

logger = logging.getLogger(__name__)

# Extra separation per push so a pair lands strictly outside the spacing margin.
_SLACK = 0.5
_GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


@dataclass
class ResolutionResult:
    iterations: int
    residual_overlaps: int
    initial_overlaps: int

    @property
    def converged(self) -> bool:
        return self.residual_overlaps == 0


def _separation(a: Node, b: Node, spacing: float, pair_index: int) -> tuple[float, float, float]:
    """Unit direction from a to b and the distance along it that clears the padded overlap."""
    acx, acy = a.center
    bcx, bcy = b.center
    dx = bcx - acx
    dy = bcy - acy
    dist = math.hypot(dx, dy)
    if dist < EPSILON:
        # Coincident centers: deterministic spread direction.
        angle = pair_index * _GOLDEN_ANGLE
        ux, uy = math.cos(angle), math.sin(angle)
    else:
        ux, uy = dx / dist, dy / dist

    overlap_x = (a.width + b.width) / 2.0 + spacing - abs(dx)
    overlap_y = (a.height + b.height) / 2.0 + spacing - abs(dy)
    along_x = overlap_x / abs(ux) if abs(ux) > EPSILON else math.inf
    along_y = overlap_y / abs(uy) if abs(uy) > EPSILON else math.inf
    depth = max(0.0, min(along_x, along_y))
    return ux, uy, depth + _SLACK


def resolve_collisions(
    nodes: Sequence[Node],
    *,
    min_spacing: float,
    separation_multiplier: float = 2.0,
    damping: float = 0.9,
    max_iterations: int = 300,
    log_every: int = 50,
    should_cancel: Callable[[], bool] | None = None,
) -> ResolutionResult:
    """Push overlapping nodes apart until no padded boxes intersect or the budget runs out.

    Each overlapping pair is pushed along the line joining their centers by
    `depth * separation_multiplier`, split evenly between the two nodes; the
    summed displacement of each node is scaled by `damping` before it is
    applied. When the budget is exhausted the lowest-overlap configuration seen
    is restored. Nodes are updated in place.
    """
    spacing = float(min_spacing)
    pairs = overlapping_pairs(nodes, spacing)
    initial = len(pairs)
    best_count = initial
    best_positions = [(n.x, n.y) for n in nodes]

    iteration = 0
    while pairs and iteration < max_iterations:
        if should_cancel is not None and should_cancel():
            raise PipelineCancelled("layout cancelled")

        iteration += 1
        shift = [[0.0, 0.0] for _ in nodes]
        for k, (i, j) in enumerate(pairs):
            ux, uy, depth = _separation(nodes[i], nodes[j], spacing, k + i * len(nodes) + j)
            push = depth * float(separation_multiplier) / 2.0
            shift[i][0] -= ux * push
            shift[i][1] -= uy * push
            shift[j][0] += ux * push
            shift[j][1] += uy * push

        for node, (sx, sy) in zip(nodes, shift):
            if sx or sy:
                node.x = float(node.x or 0.0) + sx * damping
                node.y = float(node.y or 0.0) + sy * damping

        pairs = overlapping_pairs(nodes, spacing)
        if len(pairs) < best_count:
            best_count = len(pairs)
            best_positions = [(n.x, n.y) for n in nodes]

        if log_every > 0 and iteration % log_every == 0:
            logger.debug(
                "layout iteration (iteration=%d, overlaps=%d, best=%d)",
                iteration,
                len(pairs),
                best_count,
            )

    if pairs:
        for node, (x, y) in zip(nodes, best_positions):
            node.x, node.y = x, y

    return ResolutionResult(iterations=iteration, residual_overlaps=best_count if pairs else 0, initial_overlaps=initial)
