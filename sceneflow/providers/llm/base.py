"""Chat-completion provider interface used by the enrichment analyzer."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

Role = Literal["system", "user", "assistant"]


@dataclass
class Message:
    """A chat message."""

    role: Role | str
    content: str


@dataclass
class LLMUsage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class LLMCompletionResult:
    text: str
    usage: LLMUsage | None = None


class LLMProvider(ABC):
    """A single chat-completion backend.

    Providers do not retry on their own; transient failures surface as
    `RetryableLLMError` and the caller's retry policy decides.
    """

    provider: str = "llm"
    model: str = ""

    @abstractmethod
    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        """Return the full completion text plus token usage when the backend reports it.

        Raises `RetryableLLMError` for transient failures and `ProviderError` otherwise.
        """
        ...

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str:
        result = await self.complete_with_usage(messages, temperature=temperature, max_tokens=max_tokens)
        return result.text

    async def close(self) -> None:
        return None
