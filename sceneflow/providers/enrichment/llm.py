"""LLM-backed semantic analyzer."""

from __future__ import annotations

import json
import logging
from typing import Any

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import EnrichmentUnavailable, ProviderError
from sceneflow.providers.llm._retry import RetryableLLMError
from sceneflow.providers.llm.base import LLMProvider, Message
from sceneflow.utils.llm_json import parse_llm_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You turn a short spoken-language passage into diagram data.

Return a single JSON object and nothing else:
{"entities": [{"id": "n1", "label": "..."}],
 "relations": [{"from": "n1", "to": "n2", "label": "..."}]}

Rules:
1. At most {max_entities} entities; labels at most 40 characters.
2. Entity ids are unique; every relation references existing ids.
3. Follow connectives ("next", "then", "because", "reports to") to set relation direction.
4. For sequences keep the order; for hierarchies point from superior to subordinate."""


class LLMSemanticAnalyzer:
    """Prompt an LLM for entities/relations and return the parsed payload."""

    def __init__(self, llm: LLMProvider, *, max_entities: int = 10, max_input_chars: int = 1000) -> None:
        self.llm = llm
        self.max_entities = max(2, int(max_entities))
        self.max_input_chars = max(1, int(max_input_chars))

    def _messages(self, text: str) -> list[Message]:
        return [
            Message(role="system", content=SYSTEM_PROMPT.replace("{max_entities}", str(self.max_entities))),
            Message(role="user", content=str(text or "")[: self.max_input_chars]),
        ]

    @staticmethod
    def _normalize(data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        # Also accept the {nodes, edges} shape.
        entities = data.get("entities", data.get("nodes"))
        relations = data.get("relations", data.get("edges", []))
        return {"entities": entities, "relations": relations}

    async def analyze(self, text: str) -> dict[str, Any]:
        provider = str(getattr(self.llm, "provider", "llm"))
        try:
            raw = await self.llm.complete(self._messages(text), temperature=0.1)
        except RetryableLLMError as exc:
            raise EnrichmentUnavailable(
                provider,
                exc.message,
                error_code=exc.error_code or ErrorCode.ENRICHMENT_FAILED,
                retryable=True,
            ) from exc
        except ProviderError as exc:
            raise EnrichmentUnavailable(
                provider,
                exc.message,
                error_code=exc.error_code or ErrorCode.ENRICHMENT_FAILED,
                retryable=False,
            ) from exc

        try:
            payload = self._normalize(parse_llm_json(raw))
        except (json.JSONDecodeError, ValueError) as exc:
            logger.warning("enrichment malformed response (provider=%s, error=%s)", provider, exc)
            raise EnrichmentUnavailable(
                provider,
                f"malformed response: {exc}",
                error_code=ErrorCode.ENRICHMENT_FAILED,
                retryable=False,
            ) from exc
        return payload

    async def close(self) -> None:
        await self.llm.close()
