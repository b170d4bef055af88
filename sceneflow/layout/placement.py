"""Archetype-specific deterministic initial placement.

Coordinates are placement-relative (may be negative); the engine translates the
final layout onto the canvas.
"""

from __future__ import annotations

import math
from collections import defaultdict, deque
from collections.abc import Sequence

from sceneflow.models.scene import Archetype, Edge, Node


def _adjacency(nodes: Sequence[Node], edges: Sequence[Edge]) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    ids = {n.id for n in nodes}
    succ: dict[str, list[str]] = defaultdict(list)
    pred: dict[str, list[str]] = defaultdict(list)
    for e in edges:
        if e.from_node_id in ids and e.to_node_id in ids and e.from_node_id != e.to_node_id:
            succ[e.from_node_id].append(e.to_node_id)
            pred[e.to_node_id].append(e.from_node_id)
    return succ, pred


def _acyclic_edges(order: Sequence[str], succ: dict[str, list[str]]) -> list[tuple[str, str]]:
    """DFS in node order; back edges (cycle closers) are dropped."""
    state: dict[str, int] = {}
    kept: list[tuple[str, str]] = []

    for start in order:
        if start in state:
            continue
        stack: list[tuple[str, int]] = [(start, 0)]
        state[start] = 1
        while stack:
            node, idx = stack[-1]
            children = succ.get(node, [])
            if idx >= len(children):
                state[node] = 2
                stack.pop()
                continue
            stack[-1] = (node, idx + 1)
            child = children[idx]
            if state.get(child) == 1:
                continue
            kept.append((node, child))
            if child not in state:
                state[child] = 1
                stack.append((child, 0))
    return kept


def assign_layers(nodes: Sequence[Node], edges: Sequence[Edge]) -> dict[str, int]:
    """Longest-path layering by topological order (cycles broken by DFS)."""
    order = [n.id for n in nodes]
    succ, _pred = _adjacency(nodes, edges)
    dag = _acyclic_edges(order, succ)

    indegree: dict[str, int] = {nid: 0 for nid in order}
    dag_succ: dict[str, list[str]] = defaultdict(list)
    for src, dst in dag:
        dag_succ[src].append(dst)
        indegree[dst] += 1

    layer: dict[str, int] = {nid: 0 for nid in order}
    queue = deque(nid for nid in order if indegree[nid] == 0)
    while queue:
        nid = queue.popleft()
        for child in dag_succ[nid]:
            layer[child] = max(layer[child], layer[nid] + 1)
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)
    return layer


def _order_layers(nodes: Sequence[Node], edges: Sequence[Edge], layer: dict[str, int]) -> list[list[Node]]:
    by_layer: dict[int, list[Node]] = defaultdict(list)
    for node in nodes:
        by_layer[layer[node.id]].append(node)
    _succ, pred = _adjacency(nodes, edges)

    ordered: list[list[Node]] = []
    position: dict[str, float] = {}
    for rank in sorted(by_layer):
        members = by_layer[rank]
        input_index = {n.id: i for i, n in enumerate(members)}

        def barycenter(node: Node) -> tuple[float, int]:
            placed = [position[p] for p in pred.get(node.id, []) if p in position]
            if not placed:
                return (float(input_index[node.id]), input_index[node.id])
            return (sum(placed) / len(placed), input_index[node.id])

        members = sorted(members, key=barycenter)
        for i, node in enumerate(members):
            position[node.id] = float(i)
        ordered.append(members)
    return ordered


def place_layered(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    *,
    rank_separation: float,
    node_separation: float,
    max_width: float,
) -> None:
    """Left-to-right layered placement; layers wrap onto new rows when wider than `max_width`."""
    if not nodes:
        return
    layers = _order_layers(nodes, edges, assign_layers(nodes, edges))
    widths = [max(n.width for n in members) for members in layers]

    # Greedy row wrapping of whole layers.
    rows: list[list[int]] = [[]]
    row_width = 0.0
    for idx, width in enumerate(widths):
        needed = width if not rows[-1] else row_width + rank_separation + width
        if rows[-1] and needed > max_width:
            rows.append([idx])
            row_width = width
        else:
            rows[-1].append(idx)
            row_width = needed

    top = 0.0
    for row in rows:
        heights = [
            sum(n.height for n in layers[i]) + node_separation * (len(layers[i]) - 1) for i in row
        ]
        row_height = max(heights)
        x = 0.0
        for layer_idx, column_height in zip(row, heights):
            members = layers[layer_idx]
            column_width = widths[layer_idx]
            y = top + (row_height - column_height) / 2.0
            for node in members:
                node.x = x + (column_width - node.width) / 2.0
                node.y = y
                y += node.height + node_separation
            x += column_width + rank_separation
        top += row_height + rank_separation


def place_tree(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    *,
    rank_separation: float,
    node_separation: float,
) -> None:
    """Layered tree placement: depth-first from each root, parents centered over children."""
    if not nodes:
        return
    by_id = {n.id: n for n in nodes}
    order = [n.id for n in nodes]
    succ, pred = _adjacency(nodes, edges)

    # Spanning forest: first parent seen wins.
    children: dict[str, list[str]] = defaultdict(list)
    visited: set[str] = set()
    roots: list[str] = []
    candidates = [nid for nid in order if not pred.get(nid)] + order
    for root in candidates:
        if root in visited:
            continue
        roots.append(root)
        visited.add(root)
        queue = deque([root])
        while queue:
            nid = queue.popleft()
            for child in succ.get(nid, []):
                if child not in visited:
                    visited.add(child)
                    children[nid].append(child)
                    queue.append(child)

    depth: dict[str, int] = {}
    span: dict[str, float] = {}

    def measure(nid: str, d: int) -> float:
        depth[nid] = d
        kids = children.get(nid, [])
        total = sum(measure(k, d + 1) for k in kids) + node_separation * max(0, len(kids) - 1)
        span[nid] = max(by_id[nid].width, total)
        return span[nid]

    for root in roots:
        measure(root, 0)

    level_heights: dict[int, float] = defaultdict(float)
    for nid, d in depth.items():
        level_heights[d] = max(level_heights[d], by_id[nid].height)
    level_top: dict[int, float] = {}
    top = 0.0
    for d in sorted(level_heights):
        level_top[d] = top
        top += level_heights[d] + rank_separation

    def place(nid: str, left: float) -> None:
        node = by_id[nid]
        kids = children.get(nid, [])
        node.y = level_top[depth[nid]]
        if not kids:
            node.x = left + (span[nid] - node.width) / 2.0
            return
        kids_width = sum(span[k] for k in kids) + node_separation * (len(kids) - 1)
        cursor = left + (span[nid] - kids_width) / 2.0
        for kid in kids:
            place(kid, cursor)
            cursor += span[kid] + node_separation
        first, last = by_id[kids[0]], by_id[kids[-1]]
        mid = (first.x + first.width / 2.0 + last.x + last.width / 2.0) / 2.0
        node.x = mid - node.width / 2.0

    left = 0.0
    for root in roots:
        place(root, left)
        left += span[root] + node_separation


def place_grid(nodes: Sequence[Node], *, node_separation: float) -> None:
    """Grid placement. Criteria fill the header row, options fill the first column."""
    if not nodes:
        return
    cell_w = max(n.width for n in nodes) + node_separation
    cell_h = max(n.height for n in nodes) + node_separation

    criteria = [n for n in nodes if n.role == "criterion"]
    options = [n for n in nodes if n.role == "option"]
    others = [n for n in nodes if n.role not in {"criterion", "option"}]

    cells: list[tuple[Node, int, int]] = []
    if criteria or options:
        header_offset = 1 if options else 0
        for col, node in enumerate(criteria):
            cells.append((node, 0, col + header_offset))
        first_row = 1 if criteria else 0
        for row, node in enumerate(options):
            cells.append((node, row + first_row, 0))
        next_row = first_row + len(options)
        columns = max(1, len(criteria) + header_offset)
        for i, node in enumerate(others):
            cells.append((node, next_row + i // columns, i % columns))
    else:
        columns = max(1, math.ceil(math.sqrt(len(nodes))))
        for i, node in enumerate(nodes):
            cells.append((node, i // columns, i % columns))

    for node, row, col in cells:
        node.x = col * cell_w + (cell_w - node_separation - node.width) / 2.0
        node.y = row * cell_h + (cell_h - node_separation - node.height) / 2.0


def place_circle(nodes: Sequence[Node], *, node_separation: float) -> None:
    """Even angular distribution starting at 12 o'clock, clockwise."""
    if not nodes:
        return
    if len(nodes) == 1:
        nodes[0].x, nodes[0].y = 0.0, 0.0
        return
    circumference = sum(math.hypot(n.width, n.height) + node_separation for n in nodes)
    radius = max(circumference / (2.0 * math.pi), max(n.width for n in nodes))
    step = 2.0 * math.pi / len(nodes)
    for i, node in enumerate(nodes):
        angle = -math.pi / 2.0 + i * step
        cx = radius * math.cos(angle)
        cy = radius * math.sin(angle)
        node.x = cx - node.width / 2.0
        node.y = cy - node.height / 2.0


def initial_placement(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    archetype: Archetype,
    *,
    rank_separation: float,
    node_separation: float,
    max_width: float,
) -> None:
    match archetype:
        case Archetype.TREE:
            place_tree(nodes, edges, rank_separation=rank_separation, node_separation=node_separation)
        case Archetype.MATRIX:
            place_grid(nodes, node_separation=node_separation)
        case Archetype.CYCLE:
            place_circle(nodes, node_separation=node_separation)
        case _:
            place_layered(
                nodes,
                edges,
                rank_separation=rank_separation,
                node_separation=node_separation,
                max_width=max_width,
            )
