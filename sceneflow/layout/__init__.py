"""Zero-overlap layout engine."""

from sceneflow.layout.collision import ResolutionResult, resolve_collisions
from sceneflow.layout.engine import Canvas, LayoutOptions, LayoutResult, ZeroOverlapLayoutEngine
from sceneflow.layout.geometry import count_overlaps, overlapping_pairs, padded_overlap

__all__ = [
    "Canvas",
    "LayoutOptions",
    "LayoutResult",
    "ResolutionResult",
    "ZeroOverlapLayoutEngine",
    "count_overlaps",
    "overlapping_pairs",
    "padded_overlap",
    "resolve_collisions",
]
