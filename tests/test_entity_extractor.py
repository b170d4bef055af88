from __future__ import annotations

import pytest

from sceneflow.exceptions import InvalidGraphError
from sceneflow.models.scene import Archetype, Edge, Node
from sceneflow.utils.entity_extractor import (
    EntityExtractor,
    EntityExtractorConfig,
    classify_relation,
    cue_value,
    validate_graph,
)


def _labels(graph) -> list[str]:  # noqa: ANN001
    return [n.label for n in graph.nodes]


def _pairs(graph) -> list[tuple[str, str]]:  # noqa: ANN001
    by_id = {n.id: n.label for n in graph.nodes}
    return [(by_id[e.from_node_id], by_id[e.to_node_id]) for e in graph.edges]


def test_org_chart_extracts_roles_as_single_parent_tree() -> None:
    graph = EntityExtractor().extract("The CEO oversees VPs who manage directors and teams.", Archetype.TREE)
    assert len(graph.nodes) >= 4
    assert _labels(graph) == ["CEO", "VPs", "Directors", "Teams"]
    assert _pairs(graph) == [("CEO", "VPs"), ("VPs", "Directors"), ("VPs", "Teams")]

    incoming: dict[str, int] = {}
    for edge in graph.edges:
        incoming[edge.to_node_id] = incoming.get(edge.to_node_id, 0) + 1
    assert all(count == 1 for count in incoming.values())
    roots = [n for n in graph.nodes if n.id not in incoming]
    assert len(roots) == 1


def test_reverse_relation_points_from_superior() -> None:
    graph = EntityExtractor().extract("The engineer reports to the manager.", Archetype.TREE)
    assert _pairs(graph) == [("Manager", "Engineer")]


def test_comparison_extracts_options_and_criteria_without_edges() -> None:
    graph = EntityExtractor().extract(
        "We compare option A versus option B across cost and features criteria.",
        Archetype.MATRIX,
    )
    assert _labels(graph) == ["Option A", "Option B", "Cost", "Features"]
    assert [n.role for n in graph.nodes] == ["option", "option", "criterion", "criterion"]
    assert graph.edges == []


def test_flow_chain_follows_mention_order() -> None:
    graph = EntityExtractor().extract("First do A, then B, finally C.", Archetype.FLOW)
    assert _labels(graph) == ["A", "B", "C"]
    assert _pairs(graph) == [("A", "B"), ("B", "C")]
    assert graph.edges[0].label == "then"


def test_cycle_is_closed() -> None:
    graph = EntityExtractor().extract("Alpha feeds Beta, and Beta feeds Gamma.", Archetype.CYCLE)
    assert _labels(graph) == ["Alpha", "Beta", "Gamma"]
    assert _pairs(graph)[-1] == ("Gamma", "Alpha")
    assert len(graph.edges) == 3


def test_timeline_items_are_ordered_by_date() -> None:
    graph = EntityExtractor().extract(
        "In 2010 we launched the product. In 2005 the company was founded. In 2020 we expanded.",
        Archetype.TIMELINE,
    )
    assert [label[:4] for label in _labels(graph)] == ["2005", "2010", "2020"]
    assert _pairs(graph) == list(zip(_labels(graph), _labels(graph)[1:]))


def test_placeholder_when_nothing_is_found() -> None:
    graph = EntityExtractor().extract("hmm", Archetype.FLOW)
    assert graph.placeholder is True
    assert len(graph.nodes) == 2
    assert len(graph.edges) == 1
    validate_graph(graph.nodes, graph.edges)


@pytest.mark.parametrize("text", ["The details.", "Details.", "details", "Overview details"])
@pytest.mark.parametrize("archetype", [Archetype.FLOW, Archetype.TREE, Archetype.CYCLE])
def test_placeholder_second_node_never_reuses_first_key(text: str, archetype: Archetype) -> None:
    graph = EntityExtractor().extract(text, archetype)
    ids = [n.id for n in graph.nodes]
    assert len(ids) == len(set(ids)) >= 2
    validate_graph(graph.nodes, graph.edges)


def test_max_nodes_cap_drops_dangling_edges() -> None:
    extractor = EntityExtractor(EntityExtractorConfig(max_nodes=3))
    graph = extractor.extract("Alice, Bob, Carol, Dave and Erin work together.", Archetype.FLOW)
    assert len(graph.nodes) == 3
    ids = {n.id for n in graph.nodes}
    assert all(e.from_node_id in ids and e.to_node_id in ids for e in graph.edges)


def test_node_width_follows_label_length_within_bounds() -> None:
    extractor = EntityExtractor(EntityExtractorConfig(node_min_width=100, node_max_width=200, max_label_chars=64))
    assert extractor.make_node("n1", "A").width == 100
    assert extractor.make_node("n2", "x" * 60).width == 200
    mid = extractor.make_node("n3", "x" * 10)
    assert mid.width == pytest.approx(10 * 9.0 + 24.0)


def test_long_labels_are_truncated() -> None:
    extractor = EntityExtractor(EntityExtractorConfig(max_label_chars=8))
    assert extractor.truncate_label("a very long label indeed") == "a very…"


def test_classify_relation() -> None:
    assert classify_relation(" manages ") == ("forward", "manages")
    assert classify_relation(" reports to ") == ("reverse", "reports to")
    assert classify_relation(" and ") == ("coord", None)
    assert classify_relation(". Meanwhile ") is None


def test_cue_value_orders_dates() -> None:
    assert cue_value("in march 2020") > cue_value("in january 2020") > cue_value("2019")
    assert cue_value("phase 2") == 2.0
    assert cue_value("no date here") is None


def _node(node_id: str) -> Node:
    return Node(id=node_id, label=node_id, width=100, height=50)


def test_validate_graph_rejects_structural_errors() -> None:
    with pytest.raises(InvalidGraphError):
        validate_graph([_node("a"), _node("a")], [])
    with pytest.raises(InvalidGraphError):
        validate_graph([_node("a")], [Edge(id="e1", from_node_id="a", to_node_id="ghost")])
    with pytest.raises(InvalidGraphError):
        validate_graph([_node("a")], [Edge(id="e1", from_node_id="a", to_node_id="a")])
    with pytest.raises(InvalidGraphError):
        validate_graph([Node(id="a", label="a", width=0, height=10)], [])
    validate_graph([_node("a"), _node("b")], [Edge(id="e1", from_node_id="a", to_node_id="b")])


def test_from_enrichment_builds_validated_graph() -> None:
    graph = EntityExtractor().from_enrichment(
        {
            "entities": [{"id": "x", "label": "Ingest"}, {"id": "y", "label": "Publish"}],
            "relations": [{"from": "x", "to": "y", "label": "feeds"}],
        }
    )
    assert graph.source == "enrichment"
    assert _pairs(graph) == [("Ingest", "Publish")]
    assert graph.edges[0].label == "feeds"


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {"entities": "nope", "relations": []},
        {"entities": [{"id": "x", "label": "Only"}], "relations": []},
        {
            "entities": [{"id": "x", "label": "A"}, {"id": "y", "label": "B"}],
            "relations": [{"from": "x", "to": "missing"}],
        },
        {
            "entities": [{"id": "x", "label": "A"}, {"id": "x", "label": "B"}],
            "relations": [],
        },
    ],
)
def test_from_enrichment_rejects_invalid_payloads(payload) -> None:  # noqa: ANN001
    with pytest.raises(InvalidGraphError):
        EntityExtractor().from_enrichment(payload)
