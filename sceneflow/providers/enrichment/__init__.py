"""Optional semantic-analysis (enrichment) collaborators."""

from sceneflow.providers.enrichment.base import SemanticAnalyzer
from sceneflow.providers.enrichment.llm import LLMSemanticAnalyzer

__all__ = ["LLMSemanticAnalyzer", "SemanticAnalyzer"]
