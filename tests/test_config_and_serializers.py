from __future__ import annotations

import pytest

from sceneflow.config import SegmentationConfig, Settings
from sceneflow.exceptions import ConfigurationError, SegmentationError
from sceneflow.models.scene import Archetype, Edge, LayoutStatus, Node, Scene
from sceneflow.models.serializers import (
    deserialize_scene,
    deserialize_transcript_segments,
    serialize_scene,
    serialize_transcript_segments,
)


def test_settings_defaults(settings: Settings) -> None:
    assert settings.segmentation.max_scene_length_ms == 30_000
    assert settings.segmentation.min_scene_length_ms == 3_000
    assert settings.segmentation.pause_gap_ms == 1_500
    assert settings.layout.max_iterations == 300
    assert settings.layout.min_spacing == 40.0
    assert settings.concurrency.scene_workers >= 1
    assert settings.cache.enabled is True


def test_segmentation_rejects_min_above_max() -> None:
    with pytest.raises(ConfigurationError):
        SegmentationConfig(_env_file=None, min_scene_length_ms=5_000, max_scene_length_ms=1_000)


def test_enrichment_config_disabled_returns_none(settings: Settings) -> None:
    settings.enrichment.enabled = False
    assert settings.enrichment_config() is None


def test_enrichment_config_requires_api_key(settings: Settings) -> None:
    settings.enrichment.enabled = True
    settings.enrichment.api_key = ""
    with pytest.raises(ConfigurationError):
        settings.enrichment_config()


def test_enrichment_config_defaults_openai_base_url(settings: Settings) -> None:
    settings.enrichment.enabled = True
    settings.enrichment.provider = "OpenAI"
    settings.enrichment.api_key = "k"
    settings.enrichment.base_url = None
    cfg = settings.enrichment_config()
    assert cfg is not None
    assert cfg["provider"] == "openai"
    assert cfg["base_url"] == "https://api.openai.com/v1"


def test_fingerprint_payload_tracks_output_relevant_config(settings: Settings) -> None:
    before = settings.fingerprint_payload()
    settings.layout.min_spacing = 80.0
    after = settings.fingerprint_payload()
    assert before != after
    assert "api_key" not in str(after["enrichment"])


def test_transcript_accepts_camel_and_snake_keys() -> None:
    segs = deserialize_transcript_segments(
        [
            {"text": "a", "startMs": 0, "endMs": 1000, "confidence": 0.9},
            {"text": "b", "start_ms": 1000, "end_ms": 2000},
        ]
    )
    assert [(s.text, s.start_ms, s.end_ms) for s in segs] == [("a", 0, 1000), ("b", 1000, 2000)]
    assert segs[1].confidence == 1.0
    assert serialize_transcript_segments(segs)[0] == {"text": "a", "startMs": 0, "endMs": 1000, "confidence": 0.9}


@pytest.mark.parametrize(
    "items",
    [
        {"text": "not a list"},
        ["not an object"],
        [{"text": "x", "startMs": 0}],
        [{"text": "x", "startMs": "soon", "endMs": 10}],
    ],
)
def test_transcript_rejects_malformed_input(items) -> None:  # noqa: ANN001
    with pytest.raises(SegmentationError):
        deserialize_transcript_segments(items)


def test_scene_serialization_uses_renderer_keys() -> None:
    scene = Scene(
        id="scene-0",
        start_ms=0,
        duration_ms=4000,
        text_span="first A then B",
        archetype=Archetype.FLOW,
        confidence=0.8,
        nodes=[
            Node(id="n1", label="A", width=120.0, height=60.0, x=50.0, y=50.0),
            Node(id="n2", label="B", width=120.0, height=60.0, x=250.0, y=50.0),
        ],
        edges=[Edge(id="e1", from_node_id="n1", to_node_id="n2", points=[(170.0, 80.0), (250.0, 80.0)])],
    )
    scene.quality.layout.status = LayoutStatus.COMPLETE
    scene.quality.warnings.append("classification_low_confidence")

    data = serialize_scene(scene)
    assert data["archetype"] == "flow"
    assert data["durationMs"] == 4000
    assert data["edges"][0]["fromNodeId"] == "n1"
    assert data["edges"][0]["points"] == [[170.0, 80.0], [250.0, 80.0]]
    assert data["quality"]["layout"]["status"] == "complete"
    assert data["quality"]["extractionDegraded"] is False

    restored = deserialize_scene(data)
    assert restored == scene
