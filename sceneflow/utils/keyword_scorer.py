"""Weighted keyword/pattern scoring of text against diagram archetypes.

Each archetype owns a constant keyword table with three positive tiers
(primary=10, secondary=6, context=3) and a negative tier (-10) listing words
that point at a *different* archetype. Tree and timeline additionally receive
a bounded structural-pattern bonus for explicit relational phrasing
("X reports to Y", dated events).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache

from sceneflow.models.scene import Archetype

PRIMARY_WEIGHT = 10.0
SECONDARY_WEIGHT = 6.0
CONTEXT_WEIGHT = 3.0
NEGATIVE_WEIGHT = -10.0

DEFAULT_PATTERN_CAP = 50.0


@dataclass(frozen=True)
class KeywordTable:
    primary: tuple[str, ...]
    secondary: tuple[str, ...]
    context: tuple[str, ...]
    negative: tuple[str, ...]

    def tiers(self) -> tuple[tuple[tuple[str, ...], float], ...]:
        return (
            (self.primary, PRIMARY_WEIGHT),
            (self.secondary, SECONDARY_WEIGHT),
            (self.context, CONTEXT_WEIGHT),
            (self.negative, NEGATIVE_WEIGHT),
        )


_TABLES: Mapping[Archetype, KeywordTable] = {
    Archetype.FLOW: KeywordTable(
        primary=("process", "workflow", "pipeline", "procedure", "sequence", "step", "first", "then", "finally"),
        secondary=("flow", "next", "after that", "afterwards", "follows", "second", "third", "leads to", "results in", "stage"),
        context=("data", "input", "output", "through", "system", "start", "end"),
        negative=("versus", "vs", "compare", "comparison", "matrix", "hierarchy", "org chart", "reports to", "cycle", "loop", "timeline"),
    ),
    Archetype.TREE: KeywordTable(
        primary=("hierarchy", "hierarchical", "organization", "org chart", "taxonomy", "ceo", "vp", "vice president", "director", "reports to"),
        secondary=("parent", "child", "children", "branch", "root", "category", "subcategory", "manager", "manage", "oversee", "supervise", "subordinate", "team", "under", "head"),
        context=("level", "department", "division", "company", "structure", "component", "part"),
        negative=("versus", "vs", "compare", "loop", "cycle", "timeline", "then"),
    ),
    Archetype.TIMELINE: KeywordTable(
        primary=("timeline", "chronology", "history", "evolution", "milestone", "roadmap"),
        secondary=("year", "month", "quarter", "decade", "era", "phase", "period", "date", "century", "launched", "founded"),
        context=("when", "during", "since", "until", "later", "earlier", "schedule", "progress"),
        negative=("versus", "compare", "loop", "hierarchy", "reports to"),
    ),
    Archetype.MATRIX: KeywordTable(
        primary=("comparison", "compare", "matrix", "table", "versus", "vs", "quadrant"),
        secondary=("against", "criteria", "criterion", "feature", "option", "pros", "cons", "trade-off", "tradeoff", "characteristics", "properties", "alternative"),
        context=("different", "similar", "difference", "choices", "cost", "price", "across", "rows", "columns"),
        negative=("hierarchy", "reports to", "timeline", "cycle", "loop"),
    ),
    Archetype.CYCLE: KeywordTable(
        primary=("cycle", "loop", "circular", "recurring", "cyclical", "iterative"),
        secondary=("repeat", "iteration", "continuous", "ongoing", "returns", "feedback", "round", "again"),
        context=("back", "repeatedly", "each time", "every", "start over"),
        negative=("versus", "compare", "hierarchy", "reports to", "timeline"),
    ),
}

_missing = set(Archetype) - set(_TABLES)
if _missing:  # pragma: no cover
    raise RuntimeError(f"keyword tables missing for archetypes: {sorted(a.value for a in _missing)}")

_MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
)

_HIERARCHY_PATTERNS: tuple[tuple[re.Pattern[str], float], ...] = (
    (
        re.compile(
            r"\b[\w-]+\s+(?:who\s+|which\s+|that\s+)?"
            r"(?:reports?\s+to|manages?|supervises?|oversees?|leads?(?!\s+to)|heads?|runs?)\s+"
            r"(?:the\s+|a\s+|an\s+|all\s+)?[\w-]+"
        ),
        15.0,
    ),
    (re.compile(r"\borgani[sz]ational\s+(?:chart|structure|hierarchy)\b"), 15.0),
    (re.compile(r"\b(?:is|are)\s+(?:under|below|above)\s+(?:the\s+)?[\w-]+"), 10.0),
)

_TEMPORAL_PATTERNS: tuple[tuple[re.Pattern[str], float], ...] = (
    (re.compile(r"\b(?:1[5-9]|20)\d{2}s?\b"), 10.0),
    (re.compile(rf"\b(?:{_MONTHS})\b"), 10.0),
    (re.compile(r"\bq[1-4]\b"), 10.0),
    (re.compile(r"\bphase\s+(?:\d+|one|two|three|four|five)\b"), 10.0),
    (re.compile(r"\b\d{1,2}(?:st|nd|rd|th)\s+century\b"), 10.0),
)

_PATTERNS: Mapping[Archetype, tuple[tuple[re.Pattern[str], float], ...]] = {
    Archetype.FLOW: (),
    Archetype.TREE: _HIERARCHY_PATTERNS,
    Archetype.TIMELINE: _TEMPORAL_PATTERNS,
    Archetype.MATRIX: (),
    Archetype.CYCLE: (),
}


def keyword_table(archetype: Archetype) -> KeywordTable:
    return _TABLES[archetype]


@lru_cache(maxsize=512)
def _keyword_regex(keyword: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in keyword.split())
    return re.compile(rf"(?<![\w-]){body}(?:s|es)?(?![\w-])")


def count_occurrences(text: str, keyword: str) -> int:
    """Count whole-word occurrences of `keyword` (simple plurals included) in lower-cased text."""
    return len(_keyword_regex(keyword.lower()).findall(text))


def keyword_score(text: str, archetype: Archetype) -> float:
    """Signed tier-weighted keyword score (may be negative)."""
    lowered = (text or "").lower()
    if not lowered.strip():
        return 0.0
    total = 0.0
    for keywords, weight in _TABLES[archetype].tiers():
        for kw in keywords:
            hits = count_occurrences(lowered, kw)
            if hits:
                total += hits * weight
    return total


def pattern_bonus(text: str, archetype: Archetype, *, cap: float = DEFAULT_PATTERN_CAP) -> float:
    """Structural-pattern bonus for relational phrasing, bounded by `cap`."""
    patterns = _PATTERNS[archetype]
    if not patterns:
        return 0.0
    lowered = (text or "").lower()
    bonus = 0.0
    for pattern, weight in patterns:
        bonus += len(pattern.findall(lowered)) * weight
    return min(float(cap), bonus)


def score(text: str, archetype: Archetype, *, pattern_cap: float = DEFAULT_PATTERN_CAP) -> float:
    """Score `text` for `archetype`; never negative."""
    return max(0.0, keyword_score(text, archetype) + pattern_bonus(text, archetype, cap=pattern_cap))


def score_all(text: str, *, pattern_cap: float = DEFAULT_PATTERN_CAP) -> dict[Archetype, float]:
    return {a: score(text, a, pattern_cap=pattern_cap) for a in Archetype}
