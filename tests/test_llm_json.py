from __future__ import annotations

import json

import pytest

from sceneflow.utils.llm_json import parse_llm_json


def test_parses_fenced_json_block() -> None:
    assert parse_llm_json('```json\n{"entities": []}\n```') == {"entities": []}


def test_strips_think_block_and_prose() -> None:
    text = '<think>let me see</think>Here you go: {"entities": [{"id": "a"}]} hope it helps'
    assert parse_llm_json(text) == {"entities": [{"id": "a"}]}


def test_parses_top_level_array() -> None:
    assert parse_llm_json("[1, 2]") == [1, 2]


@pytest.mark.parametrize("text", ["", "no json here", '"just a string"', "{broken"])
def test_raises_on_unusable_output(text: str) -> None:
    with pytest.raises(json.JSONDecodeError):
        parse_llm_json(text)
