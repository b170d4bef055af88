"""LLM Provider implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sceneflow.providers.llm._retry import RetryableLLMError
from sceneflow.providers.llm.base import LLMCompletionResult, LLMProvider, LLMUsage, Message

if TYPE_CHECKING:
    from sceneflow.providers.llm.anthropic import AnthropicProvider
    from sceneflow.providers.llm.openai_compat import OpenAICompatProvider

__all__ = [
    "AnthropicProvider",
    "LLMCompletionResult",
    "LLMProvider",
    "LLMUsage",
    "Message",
    "OpenAICompatProvider",
    "RetryableLLMError",
]


def __getattr__(name: str) -> Any:
    if name == "AnthropicProvider":
        from sceneflow.providers.llm.anthropic import AnthropicProvider

        return AnthropicProvider
    if name == "OpenAICompatProvider":
        from sceneflow.providers.llm.openai_compat import OpenAICompatProvider

        return OpenAICompatProvider
    raise AttributeError(name)
