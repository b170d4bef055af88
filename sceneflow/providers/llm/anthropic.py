"""Anthropic provider (official async SDK, streaming)."""

from __future__ import annotations

import logging
import time
from typing import Any

import anthropic

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import ProviderError
from sceneflow.providers.llm._retry import RetryableLLMError, status_error, timeout_error
from sceneflow.providers.llm.base import LLMCompletionResult, LLMProvider, LLMUsage, Message

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 2048


def _build_request(messages: list[Message]) -> tuple[str | None, list[dict[str, str]]]:
    """Split chat messages into the SDK's `system` string and user/assistant turns."""
    system_parts: list[str] = []
    turns: list[dict[str, str]] = []
    for m in messages:
        role = str(m.role or "").strip().lower()
        if role == "system":
            if m.content:
                system_parts.append(str(m.content))
            continue
        turns.append({"role": role if role in {"user", "assistant"} else "user", "content": str(m.content or "")})
    system = "\n\n".join(system_parts).strip()
    return (system or None), turns


def _usage_of(message: Any) -> LLMUsage | None:
    usage = getattr(message, "usage", None)
    if usage is None:
        return None
    prompt = getattr(usage, "input_tokens", None)
    completion = getattr(usage, "output_tokens", None)
    total = prompt + completion if isinstance(prompt, int) and isinstance(completion, int) else None
    return LLMUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def _translate(provider: str, exc: anthropic.APIError) -> ProviderError:
    if isinstance(exc, anthropic.APITimeoutError):
        return timeout_error(provider, str(exc))
    if isinstance(exc, anthropic.APIConnectionError):
        return RetryableLLMError(provider, str(exc), error_code=ErrorCode.PROVIDER_FAILED)
    if isinstance(exc, anthropic.APIStatusError):
        return status_error(provider, int(exc.status_code), str(exc))
    return ProviderError(provider, str(exc))


class AnthropicProvider(LLMProvider):
    """Streams a completion; SDK-level retries are disabled (`max_retries=0`)."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.provider = "anthropic"
        self.api_key = str(api_key or "").strip()
        if not self.api_key:
            raise ValueError("AnthropicProvider requires api_key")
        self.model = str(model or "").strip() or DEFAULT_ANTHROPIC_MODEL

        # The SDK appends /v1 itself.
        resolved = str(base_url or "").strip().rstrip("/")
        self.base_url = resolved.removesuffix("/v1") or None

        self._client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=float(timeout),
            max_retries=0,
        )

    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        system, turns = _build_request(messages)
        started = time.perf_counter()
        chunks: list[str] = []
        try:
            async with self._client.messages.stream(
                model=self.model,
                messages=turns,
                system=system or anthropic.NOT_GIVEN,
                temperature=float(temperature),
                max_tokens=int(max_tokens) if max_tokens is not None else DEFAULT_MAX_TOKENS,
            ) as stream:
                async for text in stream.text_stream:
                    chunks.append(text)
                final = await stream.get_final_message()
        except anthropic.APIError as exc:
            error = _translate(self.provider, exc)
            logger.warning(
                "llm call failed (provider=%s, model=%s, retryable=%s, error=%s)",
                self.provider,
                self.model,
                isinstance(error, RetryableLLMError),
                exc,
            )
            raise error from exc

        usage = _usage_of(final)
        logger.info(
            "llm call (provider=%s, model=%s, latency_ms=%s, prompt_tokens=%s, completion_tokens=%s)",
            self.provider,
            self.model,
            int((time.perf_counter() - started) * 1000),
            getattr(usage, "prompt_tokens", None),
            getattr(usage, "completion_tokens", None),
        )
        return LLMCompletionResult(text="".join(chunks), usage=usage)

    async def close(self) -> None:
        await self._client.close()
