from __future__ import annotations

import pytest

from sceneflow.exceptions import InvalidGraphError, PipelineCancelled
from sceneflow.layout import LayoutOptions, ZeroOverlapLayoutEngine, count_overlaps
from sceneflow.layout.geometry import bounding_box
from sceneflow.layout.routing import count_edge_crossings
from sceneflow.models.scene import Archetype, Edge, LayoutStatus, Node


def _node(node_id: str, x: float | None = None, y: float | None = None, *, role: str | None = None) -> Node:
    return Node(id=node_id, label=node_id, width=120.0, height=60.0, x=x, y=y, role=role)


def _chain(ids: list[str], *, close: bool = False) -> list[Edge]:
    pairs = list(zip(ids, ids[1:]))
    if close:
        pairs.append((ids[-1], ids[0]))
    return [Edge(id=f"e{i + 1}", from_node_id=a, to_node_id=b) for i, (a, b) in enumerate(pairs)]


def _overlapping_ten() -> list[Node]:
    return [
        # three overlapping pairs
        _node("p1", 0, 0),
        _node("p2", 50, 0),
        _node("q1", 1000, 0),
        _node("q2", 1050, 0),
        _node("r1", 2000, 0),
        _node("r2", 2050, 0),
        # a mutually overlapping triple
        _node("t1", 0, 1000),
        _node("t2", 30, 1010),
        _node("t3", 60, 1020),
        # isolated
        _node("solo", 1000, 1000),
    ]


def _on_boundary(point: tuple[float, float], node: Node, tol: float = 1e-3) -> bool:
    x, y = point
    left, top = float(node.x), float(node.y)
    right, bottom = left + node.width, top + node.height
    inside = left - tol <= x <= right + tol and top - tol <= y <= bottom + tol
    on_edge = min(abs(x - left), abs(x - right), abs(y - top), abs(y - bottom)) <= tol
    return inside and on_edge


def test_ten_nodes_with_six_overlaps_converge_to_zero() -> None:
    nodes = _overlapping_ten()
    assert count_overlaps(nodes, 40.0) == 6

    result = ZeroOverlapLayoutEngine().layout(nodes, [], Archetype.FLOW, initial_placement=False)

    assert result.quality.status == LayoutStatus.COMPLETE
    assert result.quality.residual_overlap_count == 0
    assert 0 < result.quality.iterations <= 300
    assert count_overlaps(result.nodes, 40.0) == 0


def test_layout_does_not_mutate_input() -> None:
    nodes = [_node("a"), _node("b"), _node("c")]
    edges = _chain(["a", "b", "c"])
    ZeroOverlapLayoutEngine().layout(nodes, edges, Archetype.FLOW)
    assert all(n.x is None and n.y is None for n in nodes)
    assert all(e.points == [] for e in edges)


def test_layout_is_idempotent() -> None:
    engine = ZeroOverlapLayoutEngine()
    nodes = [_node(f"n{i}") for i in range(6)]
    edges = _chain([n.id for n in nodes])

    first = engine.layout(nodes, edges, Archetype.FLOW)
    second = engine.layout(nodes, edges, Archetype.FLOW)
    assert [(n.x, n.y) for n in first.nodes] == pytest.approx([(n.x, n.y) for n in second.nodes])

    again = engine.layout(first.nodes, first.edges, Archetype.FLOW, initial_placement=False)
    assert again.quality.iterations == 0
    assert [(n.x, n.y) for n in again.nodes] == pytest.approx([(n.x, n.y) for n in first.nodes])


def _archetype_graph(archetype: Archetype) -> tuple[list[Node], list[Edge]]:
    if archetype == Archetype.TREE:
        nodes = [_node(i) for i in ("root", "a", "b", "c", "a1", "a2")]
        edges = [
            Edge(id="e1", from_node_id="root", to_node_id="a"),
            Edge(id="e2", from_node_id="root", to_node_id="b"),
            Edge(id="e3", from_node_id="root", to_node_id="c"),
            Edge(id="e4", from_node_id="a", to_node_id="a1"),
            Edge(id="e5", from_node_id="a", to_node_id="a2"),
        ]
        return nodes, edges
    if archetype == Archetype.MATRIX:
        nodes = [_node("o1", role="option"), _node("o2", role="option")]
        nodes += [_node(f"c{i}", role="criterion") for i in range(3)]
        return nodes, []
    ids = [f"n{i}" for i in range(6)]
    return [_node(i) for i in ids], _chain(ids, close=archetype == Archetype.CYCLE)


@pytest.mark.parametrize("archetype", list(Archetype))
def test_every_archetype_lays_out_without_overlap(archetype: Archetype) -> None:
    nodes, edges = _archetype_graph(archetype)
    options = LayoutOptions()
    result = ZeroOverlapLayoutEngine(options).layout(nodes, edges, archetype)

    assert result.quality.is_complete
    assert count_overlaps(result.nodes, options.min_spacing) == 0
    box = bounding_box(result.nodes)
    assert box.x == pytest.approx(options.margin)
    assert box.y == pytest.approx(options.margin)

    by_id = {n.id: n for n in result.nodes}
    for edge in result.edges:
        assert len(edge.points) >= 2
        assert _on_boundary(edge.points[0], by_id[edge.from_node_id])
        assert _on_boundary(edge.points[-1], by_id[edge.to_node_id])


def test_tree_places_children_below_parent() -> None:
    nodes, edges = _archetype_graph(Archetype.TREE)
    result = ZeroOverlapLayoutEngine().layout(nodes, edges, Archetype.TREE)
    by_id = {n.id: n for n in result.nodes}
    for edge in edges:
        assert by_id[edge.to_node_id].y > by_id[edge.from_node_id].y


def test_parallel_edges_are_fanned_out() -> None:
    nodes = [_node("a"), _node("b")]
    edges = [
        Edge(id="e1", from_node_id="a", to_node_id="b"),
        Edge(id="e2", from_node_id="b", to_node_id="a"),
    ]
    result = ZeroOverlapLayoutEngine().layout(nodes, edges, Archetype.FLOW)
    first, second = result.edges
    assert len(first.points) == 3 and len(second.points) == 3
    assert first.points[1] != pytest.approx(second.points[1])


def test_budget_exhaustion_reports_incomplete_instead_of_raising() -> None:
    nodes = [_node(f"n{i}", 0, 0) for i in range(20)]
    engine = ZeroOverlapLayoutEngine(LayoutOptions(max_iterations=1, damping=0.01))
    result = engine.layout(nodes, [], Archetype.FLOW, initial_placement=False)
    assert result.quality.status == LayoutStatus.INCOMPLETE
    assert result.quality.residual_overlap_count > 0
    assert result.quality.iterations == 1


def test_cancellation_is_observed_between_iterations() -> None:
    with pytest.raises(PipelineCancelled):
        ZeroOverlapLayoutEngine().layout(
            _overlapping_ten(),
            [],
            Archetype.FLOW,
            initial_placement=False,
            should_cancel=lambda: True,
        )


def test_unpositioned_nodes_require_initial_placement() -> None:
    with pytest.raises(InvalidGraphError):
        ZeroOverlapLayoutEngine().layout([_node("a")], [], Archetype.FLOW, initial_placement=False)


def test_dangling_edge_is_rejected() -> None:
    with pytest.raises(InvalidGraphError):
        ZeroOverlapLayoutEngine().layout([_node("a")], [Edge(id="e1", from_node_id="a", to_node_id="b")], Archetype.FLOW)


def test_empty_graph_is_trivially_complete() -> None:
    result = ZeroOverlapLayoutEngine().layout([], [], Archetype.FLOW)
    assert result.nodes == []
    assert result.quality.status == LayoutStatus.COMPLETE


def test_count_edge_crossings() -> None:
    edges = [
        Edge(id="e1", from_node_id="a", to_node_id="b", points=[(0.0, 0.0), (10.0, 10.0)]),
        Edge(id="e2", from_node_id="c", to_node_id="d", points=[(0.0, 10.0), (10.0, 0.0)]),
        Edge(id="e3", from_node_id="a", to_node_id="d", points=[(0.0, 0.0), (10.0, 0.0)]),
    ]
    assert count_edge_crossings(edges) == 1
