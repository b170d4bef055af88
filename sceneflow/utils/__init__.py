"""Utility helpers."""

from sceneflow.utils.keyword_scorer import score, score_all
from sceneflow.utils.diagram_classifier import DiagramClassifier, DiagramClassifierConfig
from sceneflow.utils.entity_extractor import EntityExtractor, EntityExtractorConfig, SceneGraph, validate_graph
from sceneflow.utils.llm_json import parse_llm_json
from sceneflow.utils.scene_segmenter import SceneSegmenter, SceneSegmenterConfig

__all__ = [
    "DiagramClassifier",
    "DiagramClassifierConfig",
    "EntityExtractor",
    "EntityExtractorConfig",
    "SceneGraph",
    "SceneSegmenter",
    "SceneSegmenterConfig",
    "parse_llm_json",
    "score",
    "score_all",
    "validate_graph",
]
