"""Semantic-analysis collaborator interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SemanticAnalyzer(Protocol):
    """Optional enrichment service: scene text -> {"entities": [...], "relations": [...]}.

    Implementations raise `EnrichmentUnavailable` when the service fails; the
    payload itself is validated by the caller.
    """

    async def analyze(self, text: str) -> Any: ...
