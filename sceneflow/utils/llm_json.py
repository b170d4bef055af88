"""Tolerant JSON parsing of LLM output (code fences, reasoning blocks, surrounding prose)."""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from typing import Any

_THINK_RE = re.compile(r"<think>[\s\S]*?</think>|</?think>", re.IGNORECASE)
_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

JSONData = dict[str, Any] | list[Any]


def _candidates(text: str) -> Iterator[str]:
    """Yield the spans worth trying, most specific first."""
    for match in _FENCE_RE.finditer(text):
        yield match.group(1).strip()
    yield text
    opens = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if opens:
        start = min(opens)
        end = text.rfind("}" if text[start] == "{" else "]")
        if end > start:
            yield text[start : end + 1]


def parse_llm_json(text: str) -> JSONData:
    """Parse the first JSON object or array found in LLM output.

    Raises:
        json.JSONDecodeError: If no candidate span parses to an object/array.
    """
    cleaned = _THINK_RE.sub("", text or "").strip()
    last_error: json.JSONDecodeError | None = None
    for candidate in _candidates(cleaned):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = last_error or exc
            continue
        if isinstance(data, (dict, list)):
            return data
    if last_error is not None:
        raise last_error
    raise json.JSONDecodeError("Expected a JSON object/array", cleaned, 0)
