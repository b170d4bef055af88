"""Edge routing between node boundary anchors."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence

from sceneflow.layout.geometry import (
    EPSILON,
    Point,
    Rect,
    boundary_anchor,
    node_rect,
    segment_hits_rect,
    segments_cross,
)
from sceneflow.models.scene import Edge, Node


def _obstructed(points: Sequence[Point], obstacles: Sequence[Rect]) -> bool:
    for p, q in zip(points, points[1:]):
        for rect in obstacles:
            if segment_hits_rect(p, q, rect):
                return True
    return False


def _straight(src: Rect, dst: Rect) -> list[Point]:
    return [boundary_anchor(src, dst.center), boundary_anchor(dst, src.center)]


def _elbow(src: Rect, dst: Rect, *, horizontal_first: bool) -> list[Point] | None:
    (sx, sy), (tx, ty) = src.center, dst.center
    if abs(sx - tx) < EPSILON or abs(sy - ty) < EPSILON:
        return None
    corner = (tx, sy) if horizontal_first else (sx, ty)
    return [boundary_anchor(src, corner), corner, boundary_anchor(dst, corner)]


def _offset_curve(src: Rect, dst: Rect, offset: float) -> list[Point]:
    start, end = _straight(src, dst)
    dx, dy = end[0] - start[0], end[1] - start[1]
    length = math.hypot(dx, dy)
    if length < EPSILON:
        return [start, end]
    # Perpendicular offset of the midpoint.
    nx, ny = -dy / length, dx / length
    mid = ((start[0] + end[0]) / 2.0 + nx * offset, (start[1] + end[1]) / 2.0 + ny * offset)
    return [start, mid, end]


def route_edges(nodes: Sequence[Node], edges: Sequence[Edge], *, parallel_offset: float = 18.0) -> int:
    """Assign `points` to every edge; returns the number of edges left crossing an unrelated node.

    Edges run between boundary anchors. Edges sharing the same endpoint pair are
    fanned out with a perpendicular midpoint offset; a straight edge blocked by
    another node is replaced by an orthogonal elbow when one of those is clear.
    """
    rects = {n.id: node_rect(n) for n in nodes}

    groups: dict[frozenset[str], list[Edge]] = defaultdict(list)
    for edge in edges:
        groups[frozenset((edge.from_node_id, edge.to_node_id))].append(edge)

    obstructed = 0
    for edge in edges:
        src = rects[edge.from_node_id]
        dst = rects[edge.to_node_id]
        obstacles = [r for nid, r in rects.items() if nid not in {edge.from_node_id, edge.to_node_id}]
        group = groups[frozenset((edge.from_node_id, edge.to_node_id))]

        if len(group) > 1:
            idx = group.index(edge)
            offset = (idx - (len(group) - 1) / 2.0) * float(parallel_offset)
            # Reverse-direction edges see a flipped normal; keep fans on distinct sides.
            if edge.from_node_id > edge.to_node_id:
                offset = -offset
            candidates = [_offset_curve(src, dst, offset)]
        else:
            candidates = [_straight(src, dst)]
            for horizontal_first in (True, False):
                elbow = _elbow(src, dst, horizontal_first=horizontal_first)
                if elbow is not None:
                    candidates.append(elbow)

        chosen = next((c for c in candidates if not _obstructed(c, obstacles)), None)
        if chosen is None:
            obstructed += 1
            chosen = candidates[0]
        edge.points = [(float(x), float(y)) for x, y in chosen]
    return obstructed


def count_edge_crossings(edges: Sequence[Edge]) -> int:
    """Pairwise crossings between routed edges that do not share an endpoint node."""
    crossings = 0
    for i in range(len(edges)):
        a = edges[i]
        for j in range(i + 1, len(edges)):
            b = edges[j]
            if {a.from_node_id, a.to_node_id} & {b.from_node_id, b.to_node_id}:
                continue
            if any(
                segments_cross(p1, p2, p3, p4)
                for p1, p2 in zip(a.points, a.points[1:])
                for p3, p4 in zip(b.points, b.points[1:])
            ):
                crossings += 1
    return crossings
