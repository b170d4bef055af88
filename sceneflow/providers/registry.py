"""Provider factory and registry."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sceneflow.exceptions import ConfigurationError
from sceneflow.providers.enrichment.base import SemanticAnalyzer
from sceneflow.providers.enrichment.llm import LLMSemanticAnalyzer
from sceneflow.providers.llm.base import LLMProvider

logger = logging.getLogger(__name__)


def get_llm_provider(config: Mapping[str, Any]) -> LLMProvider:
    """Get LLM provider based on configuration."""
    provider_type = str(config.get("provider", "anthropic")).strip().lower()
    timeout = float(config.get("timeout_s", 60.0))

    match provider_type:
        case "openai" | "openai_compat":
            from sceneflow.providers.llm.openai_compat import OpenAICompatProvider

            return OpenAICompatProvider(
                api_key=str(config.get("api_key") or ""),
                model=str(config.get("model") or "gpt-4o-mini"),
                base_url=config.get("base_url"),
                provider=provider_type,
                timeout=timeout,
            )
        case "anthropic" | "claude":
            from sceneflow.providers.llm.anthropic import AnthropicProvider

            api_key = str(config.get("api_key") or "").strip()
            if not api_key:
                raise ConfigurationError("Anthropic provider requires api_key")
            model = str(config.get("model") or "claude-sonnet-4-20250514").strip()
            return AnthropicProvider(
                api_key=api_key,
                model=model,
                base_url=config.get("base_url"),
                timeout=timeout,
            )
        case _:
            raise ConfigurationError(f"Unknown LLM provider: {provider_type}")


def get_semantic_analyzer(config: Mapping[str, Any] | None, *, max_entities: int = 10) -> SemanticAnalyzer | None:
    """Build the enrichment collaborator, or None when enrichment is disabled."""
    if config is None:
        return None
    llm = get_llm_provider(config)
    logger.info(
        "enrichment enabled (provider=%s, model=%s, max_entities=%d)",
        getattr(llm, "provider", "llm"),
        getattr(llm, "model", ""),
        max_entities,
    )
    return LLMSemanticAnalyzer(llm, max_entities=max_entities)
