"""Provider abstractions for external services."""

from sceneflow.providers.registry import get_llm_provider, get_semantic_analyzer

__all__ = ["get_llm_provider", "get_semantic_analyzer"]
