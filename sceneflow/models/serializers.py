"""Serialization helpers for transcript input and renderer-facing scene JSON."""

from __future__ import annotations

from typing import Any

from sceneflow.exceptions import SegmentationError
from sceneflow.models.scene import (
    Archetype,
    Edge,
    LayoutQuality,
    LayoutStatus,
    Node,
    Scene,
    SceneQuality,
)
from sceneflow.models.transcript import TranscriptSegment


def _pick(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def deserialize_transcript_segments(items: list[dict[str, Any]]) -> list[TranscriptSegment]:
    """Parse `[{text, startMs, endMs, confidence}]` (snake_case keys also accepted)."""
    if not isinstance(items, list):
        raise SegmentationError(f"transcript must be a JSON array, got {type(items).__name__}")
    out: list[TranscriptSegment] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise SegmentationError(f"transcript item {i} is not an object")
        start = _pick(item, "startMs", "start_ms")
        end = _pick(item, "endMs", "end_ms")
        if start is None or end is None:
            raise SegmentationError(f"transcript item {i} is missing startMs/endMs")
        try:
            confidence = float(item.get("confidence", 1.0))
            out.append(
                TranscriptSegment(
                    text=str(item.get("text") or ""),
                    start_ms=int(start),
                    end_ms=int(end),
                    confidence=confidence,
                )
            )
        except (TypeError, ValueError) as exc:
            raise SegmentationError(f"transcript item {i} is malformed: {exc}") from exc
    return out


def serialize_transcript_segments(segs: list[TranscriptSegment]) -> list[dict[str, Any]]:
    return [
        {
            "text": s.text,
            "startMs": int(s.start_ms),
            "endMs": int(s.end_ms),
            "confidence": float(s.confidence),
        }
        for s in segs
    ]


def serialize_node(node: Node) -> dict[str, Any]:
    return {
        "id": node.id,
        "label": node.label,
        "x": node.x,
        "y": node.y,
        "width": float(node.width),
        "height": float(node.height),
        "role": node.role,
    }


def serialize_edge(edge: Edge) -> dict[str, Any]:
    return {
        "id": edge.id,
        "fromNodeId": edge.from_node_id,
        "toNodeId": edge.to_node_id,
        "label": edge.label,
        "points": [[float(x), float(y)] for x, y in edge.points],
    }


def serialize_quality(quality: SceneQuality) -> dict[str, Any]:
    return {
        "extractionDegraded": bool(quality.extraction_degraded),
        "lowConfidence": bool(quality.low_confidence),
        "cached": bool(quality.cached),
        "layout": {
            "status": quality.layout.status.value,
            "residualOverlapCount": int(quality.layout.residual_overlap_count),
            "iterations": int(quality.layout.iterations),
            "edgeCrossings": int(quality.layout.edge_crossings),
            "fitsCanvas": bool(quality.layout.fits_canvas),
        },
        "warnings": list(quality.warnings),
    }


def serialize_scene(scene: Scene) -> dict[str, Any]:
    return {
        "id": scene.id,
        "archetype": scene.archetype.value,
        "confidence": float(scene.confidence),
        "textSpan": scene.text_span,
        "startMs": int(scene.start_ms),
        "durationMs": int(scene.duration_ms),
        "nodes": [serialize_node(n) for n in scene.nodes],
        "edges": [serialize_edge(e) for e in scene.edges],
        "quality": serialize_quality(scene.quality),
    }


def serialize_scenes(scenes: list[Scene]) -> list[dict[str, Any]]:
    return [serialize_scene(s) for s in scenes]


def deserialize_scene(item: dict[str, Any]) -> Scene:
    quality_raw = dict(item.get("quality") or {})
    layout_raw = dict(quality_raw.get("layout") or {})
    quality = SceneQuality(
        extraction_degraded=bool(quality_raw.get("extractionDegraded", False)),
        low_confidence=bool(quality_raw.get("lowConfidence", False)),
        cached=bool(quality_raw.get("cached", False)),
        layout=LayoutQuality(
            status=LayoutStatus(str(layout_raw.get("status", LayoutStatus.PENDING.value))),
            residual_overlap_count=int(layout_raw.get("residualOverlapCount", 0)),
            iterations=int(layout_raw.get("iterations", 0)),
            edge_crossings=int(layout_raw.get("edgeCrossings", 0)),
            fits_canvas=bool(layout_raw.get("fitsCanvas", True)),
        ),
        warnings=[str(w) for w in quality_raw.get("warnings") or []],
    )
    nodes = [
        Node(
            id=str(n["id"]),
            label=str(n.get("label") or ""),
            width=float(n["width"]),
            height=float(n["height"]),
            x=float(n["x"]) if n.get("x") is not None else None,
            y=float(n["y"]) if n.get("y") is not None else None,
            role=n.get("role"),
        )
        for n in item.get("nodes") or []
    ]
    edges = [
        Edge(
            id=str(e["id"]),
            from_node_id=str(e["fromNodeId"]),
            to_node_id=str(e["toNodeId"]),
            label=e.get("label"),
            points=[(float(p[0]), float(p[1])) for p in e.get("points") or []],
        )
        for e in item.get("edges") or []
    ]
    return Scene(
        id=str(item["id"]),
        start_ms=int(item["startMs"]),
        duration_ms=int(item["durationMs"]),
        text_span=str(item.get("textSpan") or ""),
        archetype=Archetype(str(item.get("archetype", Archetype.FLOW.value))),
        confidence=float(item.get("confidence", 0.0)),
        nodes=nodes,
        edges=edges,
        quality=quality,
    )


def deserialize_scenes(items: list[dict[str, Any]]) -> list[Scene]:
    return [deserialize_scene(item) for item in items]
