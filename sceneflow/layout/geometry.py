"""Axis-aligned geometry helpers shared by placement, collision and routing."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from sceneflow.models.scene import Node

EPSILON = 1e-6

Point = tuple[float, float]


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def inflate(self, pad: float) -> "Rect":
        return Rect(self.x - pad, self.y - pad, self.width + 2 * pad, self.height + 2 * pad)

    def intersects(self, other: "Rect") -> bool:
        """Strict interior intersection (touching edges do not count)."""
        return (
            self.x < other.right - EPSILON
            and other.x < self.right - EPSILON
            and self.y < other.bottom - EPSILON
            and other.y < self.bottom - EPSILON
        )


def node_rect(node: Node) -> Rect:
    return Rect(float(node.x or 0.0), float(node.y or 0.0), float(node.width), float(node.height))


def padded_overlap(a: Node, b: Node, spacing: float) -> bool:
    """True when the boxes, each expanded by spacing/2, intersect (gap < spacing on both axes)."""
    half = float(spacing) / 2.0
    return node_rect(a).inflate(half).intersects(node_rect(b).inflate(half))


def overlapping_pairs(nodes: Sequence[Node], spacing: float) -> list[tuple[int, int]]:
    pairs: list[tuple[int, int]] = []
    for i in range(len(nodes)):
        for j in range(i + 1, len(nodes)):
            if padded_overlap(nodes[i], nodes[j], spacing):
                pairs.append((i, j))
    return pairs


def count_overlaps(nodes: Sequence[Node], spacing: float) -> int:
    return len(overlapping_pairs(nodes, spacing))


def bounding_box(nodes: Sequence[Node]) -> Rect:
    if not nodes:
        return Rect(0.0, 0.0, 0.0, 0.0)
    rects = [node_rect(n) for n in nodes]
    left = min(r.x for r in rects)
    top = min(r.y for r in rects)
    right = max(r.right for r in rects)
    bottom = max(r.bottom for r in rects)
    return Rect(left, top, right - left, bottom - top)


def translate(nodes: Sequence[Node], dx: float, dy: float) -> None:
    for node in nodes:
        node.x = float(node.x or 0.0) + dx
        node.y = float(node.y or 0.0) + dy


def boundary_anchor(rect: Rect, toward: Point) -> Point:
    """Point where the ray from the rect center toward `toward` leaves the rect."""
    cx, cy = rect.center
    dx = toward[0] - cx
    dy = toward[1] - cy
    if abs(dx) < EPSILON and abs(dy) < EPSILON:
        return (cx, cy)
    sx = (rect.width / 2.0) / abs(dx) if abs(dx) >= EPSILON else math.inf
    sy = (rect.height / 2.0) / abs(dy) if abs(dy) >= EPSILON else math.inf
    s = min(sx, sy)
    return (cx + dx * s, cy + dy * s)


def _orientation(p: Point, q: Point, r: Point) -> float:
    return (q[0] - p[0]) * (r[1] - p[1]) - (q[1] - p[1]) * (r[0] - p[0])


def segments_cross(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
    """Proper crossing of two segments (shared endpoints and collinear touches excluded)."""
    d1 = _orientation(p3, p4, p1)
    d2 = _orientation(p3, p4, p2)
    d3 = _orientation(p1, p2, p3)
    d4 = _orientation(p1, p2, p4)
    return (
        ((d1 > EPSILON and d2 < -EPSILON) or (d1 < -EPSILON and d2 > EPSILON))
        and ((d3 > EPSILON and d4 < -EPSILON) or (d3 < -EPSILON and d4 > EPSILON))
    )


def segment_hits_rect(p: Point, q: Point, rect: Rect) -> bool:
    """True when segment p-q passes through the interior of `rect` (Liang-Barsky clip)."""
    inner = rect.inflate(-1.0)
    if inner.width <= 0 or inner.height <= 0:
        return False
    dx = q[0] - p[0]
    dy = q[1] - p[1]
    t0, t1 = 0.0, 1.0
    for edge_p, edge_q in (
        (-dx, p[0] - inner.x),
        (dx, inner.right - p[0]),
        (-dy, p[1] - inner.y),
        (dy, inner.bottom - p[1]),
    ):
        if abs(edge_p) < EPSILON:
            if edge_q < 0:
                return False
            continue
        t = edge_q / edge_p
        if edge_p < 0:
            t0 = max(t0, t)
        else:
            t1 = min(t1, t)
        if t0 > t1:
            return False
    return t1 - t0 > EPSILON
