"""Scene graph models (scene, nodes, edges, quality flags)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Archetype(str, Enum):
    FLOW = "flow"
    TREE = "tree"
    TIMELINE = "timeline"
    MATRIX = "matrix"
    CYCLE = "cycle"


class LayoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


@dataclass
class Node:
    id: str
    label: str
    width: float
    height: float
    # Top-left corner; None until laid out.
    x: float | None = None
    y: float | None = None
    role: str | None = None

    @property
    def positioned(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def center(self) -> tuple[float, float]:
        return (float(self.x or 0.0) + self.width / 2.0, float(self.y or 0.0) + self.height / 2.0)


@dataclass
class Edge:
    id: str
    from_node_id: str
    to_node_id: str
    label: str | None = None
    points: list[tuple[float, float]] = field(default_factory=list)


@dataclass
class ClassificationResult:
    """Ephemeral classifier output; only the archetype/confidence survive on the Scene."""

    archetype: Archetype
    confidence: float
    score_breakdown: dict[Archetype, float]
    pattern_breakdown: dict[Archetype, float] = field(default_factory=dict)
    low_confidence: bool = False


@dataclass
class LayoutQuality:
    status: LayoutStatus = LayoutStatus.PENDING
    residual_overlap_count: int = 0
    iterations: int = 0
    edge_crossings: int = 0
    fits_canvas: bool = True

    @property
    def is_complete(self) -> bool:
        return self.status == LayoutStatus.COMPLETE


@dataclass
class SceneQuality:
    extraction_degraded: bool = False
    low_confidence: bool = False
    cached: bool = False
    layout: LayoutQuality = field(default_factory=LayoutQuality)
    warnings: list[str] = field(default_factory=list)


@dataclass
class Scene:
    id: str
    start_ms: int
    duration_ms: int
    text_span: str
    archetype: Archetype = Archetype.FLOW
    confidence: float = 0.0
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    quality: SceneQuality = field(default_factory=SceneQuality)

    @property
    def end_ms(self) -> int:
        return int(self.start_ms) + int(self.duration_ms)

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}
