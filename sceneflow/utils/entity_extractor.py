"""Rule-based entity/relation extraction for one scene.

Candidate nodes come from role nouns ("CEO", "directors", "team") and
capitalized tokens; relations come from the connective text between
consecutive mentions ("manages", "reports to", "leads to", "after").
The graph is then shaped by archetype:

- tree: single root, each other node has exactly one parent (first detected wins)
- timeline: nodes ordered by date/ordinal cues, consecutive nodes chained
- cycle: chain closed back to the first node
- matrix: options and criteria, no edges
- flow: chain in mention order

When fewer than two entities are found the extractor falls back to clause
labels, and finally to a two-node placeholder built from the scene text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from sceneflow.config import ExtractionConfig
from sceneflow.exceptions import InvalidGraphError
from sceneflow.models.scene import Archetype, Edge, Node

logger = logging.getLogger(__name__)

ROLE_NOUNS: tuple[str, ...] = (
    "vice president",
    "ceo",
    "cto",
    "cfo",
    "coo",
    "cio",
    "svp",
    "evp",
    "vp",
    "president",
    "chairman",
    "founder",
    "executive",
    "officer",
    "director",
    "manager",
    "supervisor",
    "coordinator",
    "engineer",
    "developer",
    "designer",
    "analyst",
    "specialist",
    "assistant",
    "intern",
    "employee",
    "staff",
    "team",
    "department",
    "division",
    "board",
    "customer",
    "client",
    "user",
)

_ACRONYMS = frozenset({"ceo", "cto", "cfo", "coo", "cio", "svp", "evp", "vp", "hr", "qa"})

# Second-node labels for placeholder graphs; at most one can collide with the first node.
_PLACEHOLDER_LABELS = ("Details", "Overview", "Summary")

_STOPWORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "so", "if", "as", "at", "by", "for", "from",
        "in", "into", "of", "on", "to", "with", "over", "under", "after", "before", "during",
        "since", "until", "while", "when", "once", "then", "next", "first", "second",
        "third", "finally", "lastly", "now", "also", "here", "there", "this", "that",
        "these", "those", "it", "its", "we", "i", "you", "they", "he", "she", "our", "my",
        "your", "their", "his", "her", "each", "every", "all", "some", "many", "most",
        "both", "what", "how", "why", "who", "which", "let", "lets", "let's", "ok", "okay",
        "well", "yes", "no", "is", "are", "was", "were", "be", "do", "does", "did",
    }
)

_ROLE_RE = re.compile(
    r"(?<![\w-])(?:"
    + "|".join(r"\s+".join(re.escape(p) for p in role.split()) for role in ROLE_NOUNS)
    + r")(?:s|es)?(?![\w-])",
    re.IGNORECASE,
)
_CAPITALIZED_RE = re.compile(r"\b[A-Z][\w'&-]*(?:\s+[A-Z][\w'&-]*)*")
_WORD_RE = re.compile(r"\S+")
_SENTENCE_BREAK_RE = re.compile(r"[.!?;]")
_COORDINATION_RE = re.compile(r"^\s*(?:,\s*)?(?:and|or|as\s+well\s+as|,)?\s*$", re.IGNORECASE)


def _phrase(pattern: str) -> str:
    return rf"(?<![\w-])(?:{pattern})(?![\w-])"


# (pattern, direction); "reverse" means the later mention is the source.
_RELATION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(_phrase(p), re.IGNORECASE), direction)
    for p, direction in (
        (r"reports?\s+(?:directly\s+)?to", "reverse"),
        (r"works?\s+(?:for|under)", "reverse"),
        (r"(?:is|are)\s+(?:managed|led|overseen|supervised|run|headed|owned|caused)\s+by", "reverse"),
        (r"belongs?\s+to", "reverse"),
        (r"(?:is|are)\s+(?:a\s+)?(?:part|member)s?\s+of", "reverse"),
        (r"depends?\s+on", "reverse"),
        (r"under|below|after|follows?", "reverse"),
        (r"manages?|oversees?|supervises?|heads?|runs?|owns?", "forward"),
        (r"leads?\s+to|leads?|causes?|triggers?|results?\s+in|produces?", "forward"),
        (r"feeds?(?:\s+into)?|sends?(?:\s+to)?|becomes?|contains?|includes?", "forward"),
        (r"then|before|followed\s+by|above", "forward"),
    )
)

_CLAUSE_SPLIT_RE = re.compile(
    r"[.!?;,]+|\b(?:and\s+then|after\s+that|afterwards|then|next|finally)\b",
    re.IGNORECASE,
)
_CLAUSE_LEAD_RE = re.compile(
    r"^(?:(?:and|so|but|first|second|third|lastly|finally|then|next|now)\b[\s,]*)+",
    re.IGNORECASE,
)

_OPTION_RE = re.compile(
    r"\b(?i:option|plan|choice|approach|alternative|tier|vendor|product)\s+([A-Z0-9][\w-]*)"
)
_VERSUS_RE = re.compile(
    r"([\w-]+)\s+(?:versus|vs\.?|compared\s+(?:to|with))\s+([\w-]+)", re.IGNORECASE
)
_CRITERIA_RE = re.compile(
    r"\b(?:across|in\s+terms\s+of|based\s+on|with\s+respect\s+to|regarding)\s+([^.;!?]+)",
    re.IGNORECASE,
)
_CRITERIA_TAIL_RE = re.compile(r"\b(?:criteria|criterion|dimensions?|factors?|metrics?)\b.*$", re.IGNORECASE)
_LIST_SPLIT_RE = re.compile(r",|\band\b|\bor\b", re.IGNORECASE)

_MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
_MONTH_RE = re.compile(
    r"\b(january|february|march|april|(?<=in\s)may|may(?=\s+\d)|june|july|august"
    r"|september|october|november|december)\b"
)
_YEAR_RE = re.compile(r"\b((?:1[5-9]|20)\d{2})s?\b")
_QUARTER_RE = re.compile(r"\bq([1-4])\b")
_PHASE_RE = re.compile(r"\b(?:phase|stage|step)\s+(\d+)\b")
_CENTURY_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\s+century\b")
_ORDINAL_WORDS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "sixth": 6}
_ORDINAL_RE = re.compile(r"\b(first|second|third|fourth|fifth|sixth)\b")
_TIMELINE_LEAD_RE = re.compile(r"^(?:in|by|on|during|since|around|from|at)\s+", re.IGNORECASE)
_PIECE_SPLIT_RE = re.compile(r"(?<=[.!?;,])\s+")


@dataclass(frozen=True)
class EntityExtractorConfig:
    max_nodes: int = 20
    node_min_width: float = 120.0
    node_max_width: float = 280.0
    node_height: float = 60.0
    char_width: float = 9.0
    max_label_chars: int = 32
    label_padding: float = 24.0

    @classmethod
    def from_settings(cls, cfg: ExtractionConfig) -> "EntityExtractorConfig":
        return cls(
            max_nodes=int(cfg.max_nodes),
            node_min_width=float(cfg.node_min_width),
            node_max_width=float(cfg.node_max_width),
            node_height=float(cfg.node_height),
            char_width=float(cfg.char_width),
            max_label_chars=int(cfg.max_label_chars),
        )


@dataclass
class SceneGraph:
    """Unpositioned nodes/edges for one scene."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    placeholder: bool = False
    source: str = "rules"


@dataclass
class _Mention:
    start: int
    end: int
    label: str
    key: str


@dataclass
class _Item:
    key: str
    label: str
    role: str | None = None
    cue: float | None = None


# (kind, earlier_key, later_key, label); kind is forward | reverse | coord
_Relation = tuple[str, str, str, str | None]


def entity_key(label: str) -> str:
    key = " ".join(str(label or "").lower().split())
    if len(key) > 2 and key.endswith("s") and not key.endswith("ss"):
        key = key[:-1]
    return key


def _sentence_initial(text: str, pos: int) -> bool:
    prefix = text[:pos].rstrip()
    return not prefix or prefix[-1] in ".!?:\"'“("


def _is_cap_stopword(word: str, text: str, pos: int) -> bool:
    lw = word.lower().strip("'")
    if lw == "a":
        # "A" mid-sentence is an identifier ("option A"); sentence-initially it is the article.
        return _sentence_initial(text, pos)
    return lw in _STOPWORDS


def _display_label(surface: str) -> str:
    surface = " ".join(surface.split())
    if surface and surface[0].islower():
        return surface[0].upper() + surface[1:]
    return surface


def cue_value(text: str) -> float | None:
    """Sortable value for the first date/ordinal cue in `text`, or None."""
    lw = (text or "").lower()
    month_m = _MONTH_RE.search(lw)
    quarter_m = _QUARTER_RE.search(lw)
    year_m = _YEAR_RE.search(lw)
    if year_m:
        value = float(year_m.group(1))
        if month_m:
            value += (_MONTHS.index(month_m.group(1)) / 12.0)
        elif quarter_m:
            value += (int(quarter_m.group(1)) - 1) / 4.0
        return value
    century_m = _CENTURY_RE.search(lw)
    if century_m:
        return (int(century_m.group(1)) - 1) * 100.0
    if month_m:
        return float(_MONTHS.index(month_m.group(1)) + 1)
    if quarter_m:
        return float(quarter_m.group(1))
    phase_m = _PHASE_RE.search(lw)
    if phase_m:
        return float(phase_m.group(1))
    ordinal_m = _ORDINAL_RE.search(lw)
    if ordinal_m:
        return float(_ORDINAL_WORDS[ordinal_m.group(1)])
    return None


def classify_relation(between: str) -> tuple[str, str | None] | None:
    """Classify the connective text between two mentions.

    Returns (kind, label) with kind in forward/reverse/coord, or None.
    """
    if _SENTENCE_BREAK_RE.search(between):
        return None
    best: tuple[int, int, str, str] | None = None
    for pattern, direction in _RELATION_PATTERNS:
        m = pattern.search(between)
        if m is None:
            continue
        candidate = (m.start(), -len(m.group(0)), direction, " ".join(m.group(0).lower().split()))
        if best is None or candidate[:2] < best[:2]:
            best = candidate
    if best is not None:
        return best[2], best[3]
    if _COORDINATION_RE.match(between):
        return "coord", None
    return None


def validate_graph(nodes: Sequence[Node], edges: Sequence[Edge]) -> None:
    """Raise InvalidGraphError unless node ids are unique and every edge references them."""
    seen: set[str] = set()
    for node in nodes:
        node_id = str(node.id or "").strip()
        if not node_id:
            raise InvalidGraphError("node with empty id")
        if node_id in seen:
            raise InvalidGraphError(f"duplicate node id {node_id!r}")
        if not (float(node.width) > 0 and float(node.height) > 0):
            raise InvalidGraphError(f"node {node_id!r} has non-positive size")
        seen.add(node_id)

    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            raise InvalidGraphError(f"duplicate edge id {edge.id!r}")
        edge_ids.add(edge.id)
        if edge.from_node_id not in seen or edge.to_node_id not in seen:
            raise InvalidGraphError(
                f"edge {edge.id!r} references unknown node "
                f"({edge.from_node_id!r} -> {edge.to_node_id!r})"
            )
        if edge.from_node_id == edge.to_node_id:
            raise InvalidGraphError(f"edge {edge.id!r} is a self-loop on {edge.from_node_id!r}")


class EntityExtractor:
    def __init__(self, config: EntityExtractorConfig | None = None) -> None:
        self.config = config or EntityExtractorConfig()

    def truncate_label(self, label: str) -> str:
        label = " ".join(str(label or "").split())
        limit = int(self.config.max_label_chars)
        if len(label) <= limit:
            return label
        return label[: limit - 1].rstrip() + "…"

    def make_node(self, node_id: str, label: str, *, role: str | None = None) -> Node:
        cfg = self.config
        label = self.truncate_label(label)
        width = len(label) * cfg.char_width + cfg.label_padding
        width = max(cfg.node_min_width, min(cfg.node_max_width, width))
        return Node(id=node_id, label=label, width=float(width), height=float(cfg.node_height), role=role)

    # --- candidate detection -------------------------------------------------

    def _mentions(self, text: str) -> list[_Mention]:
        raw: list[_Mention] = []
        for m in _ROLE_RE.finditer(text):
            raw.append(_Mention(m.start(), m.end(), _display_label(m.group(0)), entity_key(m.group(0))))

        for m in _CAPITALIZED_RE.finditer(text):
            words = list(_WORD_RE.finditer(m.group(0)))
            while words and _is_cap_stopword(words[0].group(0), text, m.start() + words[0].start()):
                words.pop(0)
            while words and _is_cap_stopword(words[-1].group(0), text, m.start() + words[-1].start()):
                words.pop()
            if not words:
                continue
            start = m.start() + words[0].start()
            end = m.start() + words[-1].end()
            surface = text[start:end]
            raw.append(_Mention(start, end, _display_label(surface), entity_key(surface)))

        # Longest mention wins where role and capitalized spans overlap.
        raw.sort(key=lambda x: (x.start, -(x.end - x.start)))
        mentions: list[_Mention] = []
        last_end = -1
        for mention in raw:
            if mention.start < last_end:
                continue
            mentions.append(mention)
            last_end = mention.end
        return mentions

    @staticmethod
    def _items_from_mentions(mentions: Sequence[_Mention]) -> list[_Item]:
        items: list[_Item] = []
        seen: set[str] = set()
        for mention in mentions:
            if mention.key in seen:
                continue
            seen.add(mention.key)
            items.append(_Item(key=mention.key, label=mention.label))
        return items

    @staticmethod
    def _relations(text: str, mentions: Sequence[_Mention]) -> list[_Relation]:
        relations: list[_Relation] = []
        for prev, cur in zip(mentions, mentions[1:]):
            if prev.key == cur.key:
                continue
            found = classify_relation(text[prev.end : cur.start])
            if found is None:
                continue
            kind, label = found
            relations.append((kind, prev.key, cur.key, label))
        return relations

    def _clause_items(self, text: str) -> list[_Item]:
        items: list[_Item] = []
        seen: set[str] = set()
        for piece in _CLAUSE_SPLIT_RE.split(text):
            clause = _CLAUSE_LEAD_RE.sub("", piece.strip()).strip(" ,:-")
            if len(clause) < 2:
                continue
            key = entity_key(clause)
            if key in seen:
                continue
            seen.add(key)
            items.append(_Item(key=key, label=_display_label(clause), cue=cue_value(piece)))
        return items

    def _timeline_items(self, text: str) -> list[_Item]:
        items: list[_Item] = []
        parts: list[str] = []
        cues: list[float] = []
        for piece in _PIECE_SPLIT_RE.split(text):
            piece = piece.strip()
            if not piece:
                continue
            cue = cue_value(piece)
            if cue is not None:
                parts.append(piece)
                cues.append(cue)
            elif parts:
                parts[-1] = f"{parts[-1]} {piece}"
        seen: set[str] = set()
        for part, cue in zip(parts, cues):
            label = _TIMELINE_LEAD_RE.sub("", part).rstrip(" .;!?,")
            key = entity_key(label)
            if not label or key in seen:
                continue
            seen.add(key)
            items.append(_Item(key=key, label=_display_label(label), cue=cue))
        return items

    def _matrix_items(self, text: str) -> list[_Item]:
        options: list[str] = [f"Option {m.group(1)}" for m in _OPTION_RE.finditer(text)]
        if len(options) < 2:
            for m in _VERSUS_RE.finditer(text):
                for word in (m.group(1), m.group(2)):
                    if word.lower() not in _STOPWORDS:
                        options.append(word)

        criteria: list[str] = []
        for m in _CRITERIA_RE.finditer(text):
            body = _CRITERIA_TAIL_RE.sub("", m.group(1))
            for part in _LIST_SPLIT_RE.split(body):
                words = [w for w in part.split() if w.lower() not in _STOPWORDS]
                if words:
                    criteria.append(" ".join(words))

        items: list[_Item] = []
        seen: set[str] = set()
        for label, role in [(o, "option") for o in options] + [(c, "criterion") for c in criteria]:
            key = entity_key(label)
            if key in seen:
                continue
            seen.add(key)
            items.append(_Item(key=key, label=_display_label(label), role=role))
        return items

    def _placeholder_items(self, text: str, found: Sequence[_Item]) -> list[_Item]:
        words = [w for w in re.findall(r"[^\W\d_][\w'-]*", text) if w.lower() not in _STOPWORDS and len(w) > 2]
        if found:
            first = found[0]
        else:
            head = " ".join(words[:3])
            first = _Item(key=entity_key(head or "topic"), label=_display_label(head or "Topic"))
        rest = [w for w in words if entity_key(w) not in first.key.split()]
        candidates = [_display_label(" ".join(rest[:3]))] if rest else []
        candidates.extend(_PLACEHOLDER_LABELS)
        second_label = next(label for label in candidates if entity_key(label) != first.key)
        return [first, _Item(key=entity_key(second_label), label=second_label)]

    # --- archetype shaping ---------------------------------------------------

    @staticmethod
    def _relation_between(relations: Sequence[_Relation], a: str, b: str) -> tuple[str, str, str | None]:
        for kind, first, second, label in relations:
            if (first, second) == (a, b):
                return (b, a, label) if kind == "reverse" else (a, b, label)
            if (first, second) == (b, a):
                return (a, b, label) if kind == "reverse" else (b, a, label)
        return a, b, None

    def _chain(self, keys: Sequence[str], relations: Sequence[_Relation], *, directed: bool) -> list[tuple[str, str, str | None]]:
        edges: list[tuple[str, str, str | None]] = []
        for a, b in zip(keys, keys[1:]):
            src, dst, label = self._relation_between(relations, a, b)
            if not directed:
                src, dst = a, b
            edges.append((src, dst, label))
        return edges

    @staticmethod
    def _tree(keys: Sequence[str], relations: Sequence[_Relation]) -> list[tuple[str, str, str | None]]:
        parent: dict[str, str] = {}
        labels: dict[tuple[str, str], str | None] = {}
        edges: list[tuple[str, str, str | None]] = []

        def creates_cycle(src: str, dst: str) -> bool:
            node = src
            while True:
                if node == dst:
                    return True
                if node not in parent:
                    return False
                node = parent[node]

        for kind, a, b, label in relations:
            if kind == "coord":
                if a not in parent:
                    continue
                src, dst = parent[a], b
                label = labels.get((src, a))
            elif kind == "forward":
                src, dst = a, b
            else:
                src, dst = b, a
            # First detected parent wins.
            if dst in parent or creates_cycle(src, dst):
                continue
            parent[dst] = src
            labels[(src, dst)] = label
            edges.append((src, dst, label))

        roots = [k for k in keys if k not in parent]
        with_children = set(parent.values())
        root = next((k for k in roots if k in with_children), roots[0])
        for key in roots:
            if key != root:
                parent[key] = root
                edges.append((root, key, None))
        return edges

    def _build(self, items: list[_Item], relations: list[_Relation], archetype: Archetype, *, placeholder: bool = False) -> SceneGraph:
        cap = int(self.config.max_nodes)
        if len(items) > cap:
            logger.info("extraction truncated (found=%d, max_nodes=%d)", len(items), cap)
            items = items[:cap]
        kept = {item.key for item in items}
        relations = [r for r in relations if r[1] in kept and r[2] in kept]

        if archetype == Archetype.TIMELINE:
            # Cue-less items inherit the previous cue so they stay next to their context.
            keyed: list[tuple[float, int, _Item]] = []
            carry = float("-inf")
            for idx, item in enumerate(items):
                if item.cue is not None:
                    carry = item.cue
                keyed.append((carry, idx, item))
            items = [item for _cue, _idx, item in sorted(keyed, key=lambda t: (t[0], t[1]))]

        keys = [item.key for item in items]
        match archetype:
            case Archetype.TREE:
                pairs = self._tree(keys, relations)
            case Archetype.TIMELINE:
                pairs = self._chain(keys, [], directed=False)
            case Archetype.CYCLE:
                pairs = self._chain(keys, relations, directed=False)
                if len(keys) >= 2:
                    pairs.append((keys[-1], keys[0], None))
            case Archetype.MATRIX:
                pairs = []
            case _:
                pairs = self._chain(keys, relations, directed=True)

        ids = {item.key: f"n{i + 1}" for i, item in enumerate(items)}
        nodes = [self.make_node(ids[item.key], item.label, role=item.role) for item in items]
        edges: list[Edge] = []
        seen_pairs: set[tuple[str, str]] = set()
        for src, dst, label in pairs:
            pair = (ids[src], ids[dst])
            if pair in seen_pairs or pair[0] == pair[1]:
                continue
            seen_pairs.add(pair)
            edges.append(Edge(id=f"e{len(edges) + 1}", from_node_id=pair[0], to_node_id=pair[1], label=label))

        validate_graph(nodes, edges)
        return SceneGraph(nodes=nodes, edges=edges, placeholder=placeholder)

    # --- public API ----------------------------------------------------------

    def extract(self, text: str, archetype: Archetype) -> SceneGraph:
        """Derive an unpositioned node/edge set from `text`, shaped for `archetype`."""
        text = " ".join(str(text or "").split())

        if archetype == Archetype.MATRIX:
            items = self._matrix_items(text)
            if len(items) >= 2:
                return self._build(items, [], archetype)
        elif archetype == Archetype.TIMELINE:
            items = self._timeline_items(text)
            if len(items) >= 2:
                return self._build(items, [], archetype)

        mentions = self._mentions(text)
        items = self._items_from_mentions(mentions)
        relations = self._relations(text, mentions)
        if len(items) >= 2:
            graph = self._build(items, relations, archetype)
        else:
            clauses = self._clause_items(text)
            if len(clauses) >= 2:
                graph = self._build(clauses, [], archetype)
            else:
                logger.info(
                    "extraction placeholder (archetype=%s, entities=%d)", archetype.value, len(items)
                )
                graph = self._build(self._placeholder_items(text, items), [], archetype, placeholder=True)

        logger.debug(
            "extracted (archetype=%s, nodes=%d, edges=%d)",
            archetype.value,
            len(graph.nodes),
            len(graph.edges),
        )
        return graph

    def from_enrichment(self, payload: Any) -> SceneGraph:
        """Convert an enrichment payload ({entities, relations}) into a validated graph.

        Raises InvalidGraphError on any structural problem so callers can fall
        back to the rule-based result.
        """
        if not isinstance(payload, Mapping):
            raise InvalidGraphError(f"enrichment payload must be an object, got {type(payload).__name__}")
        entities = payload.get("entities")
        relations = payload.get("relations") or []
        if not isinstance(entities, list) or not isinstance(relations, list):
            raise InvalidGraphError("enrichment payload requires list 'entities' and list 'relations'")

        nodes: list[Node] = []
        for i, entity in enumerate(entities):
            if not isinstance(entity, Mapping):
                raise InvalidGraphError(f"entity {i} is not an object")
            node_id = str(entity.get("id") or "").strip()
            label = str(entity.get("label") or entity.get("name") or node_id).strip()
            if not node_id or not label:
                raise InvalidGraphError(f"entity {i} is missing id/label")
            role = entity.get("role")
            nodes.append(self.make_node(node_id, label, role=str(role) if role else None))

        if len(nodes) < 2:
            raise InvalidGraphError(f"enrichment returned {len(nodes)} entities (need >= 2)")

        edges: list[Edge] = []
        for i, relation in enumerate(relations):
            if not isinstance(relation, Mapping):
                raise InvalidGraphError(f"relation {i} is not an object")
            src = str(relation.get("from") or relation.get("source") or "").strip()
            dst = str(relation.get("to") or relation.get("target") or "").strip()
            label = relation.get("label")
            edges.append(
                Edge(
                    id=f"e{i + 1}",
                    from_node_id=src,
                    to_node_id=dst,
                    label=str(label) if label else None,
                )
            )

        validate_graph(nodes, edges)

        cap = int(self.config.max_nodes)
        if len(nodes) > cap:
            logger.info("enrichment truncated (found=%d, max_nodes=%d)", len(nodes), cap)
            nodes = nodes[:cap]
            kept = {n.id for n in nodes}
            edges = [e for e in edges if e.from_node_id in kept and e.to_node_id in kept]
        return SceneGraph(nodes=nodes, edges=edges, source="enrichment")
