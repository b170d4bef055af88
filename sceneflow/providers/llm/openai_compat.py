"""OpenAI-compatible chat completions over httpx (SSE streaming)."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import ProviderError
from sceneflow.providers.llm._retry import RetryableLLMError, status_error, timeout_error
from sceneflow.providers.llm.base import LLMCompletionResult, LLMProvider, LLMUsage, Message

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
_MAX_ERROR_BODY = 2000


async def _sse_payloads(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the joined `data:` lines of each server-sent event."""
    buffer: list[str] = []
    async for line in response.aiter_lines():
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip())
        elif not line and buffer:
            yield "\n".join(buffer)
            buffer = []
    if buffer:
        yield "\n".join(buffer)


def _error_message(response: httpx.Response, body: bytes) -> str:
    detail = body.decode("utf-8", errors="replace").strip()
    if len(detail) > _MAX_ERROR_BODY:
        detail = detail[:_MAX_ERROR_BODY] + "…"
    head = f"HTTP {response.status_code} {response.reason_phrase}"
    return f"{head}: {detail}" if detail else head


class _StreamAccumulator:
    """Collects delta text and the last reported token usage from stream events."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        self.chunks: list[str] = []
        self.usage: LLMUsage | None = None

    def feed(self, event: Any) -> None:
        if not isinstance(event, dict):
            return
        error = event.get("error")
        if isinstance(error, dict):
            raise ProviderError(
                self.provider,
                str(error.get("message") or error),
                error_code=ErrorCode.PROVIDER_FAILED,
            )
        choices = event.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            delta = choices[0].get("delta")
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str) and content:
                self.chunks.append(content)
        usage = event.get("usage")
        if isinstance(usage, dict):
            counts = {k: usage.get(k) for k in ("prompt_tokens", "completion_tokens", "total_tokens")}
            if any(isinstance(v, int) for v in counts.values()):
                self.usage = LLMUsage(**{k: v if isinstance(v, int) else None for k, v in counts.items()})

    def result(self) -> LLMCompletionResult:
        return LLMCompletionResult(text="".join(self.chunks), usage=self.usage)


class OpenAICompatProvider(LLMProvider):
    """Any `/chat/completions` backend that speaks the OpenAI streaming protocol."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        provider: str = "openai",
        timeout: float = 60.0,
    ) -> None:
        self.provider = provider
        self.base_url = (str(base_url or "").strip() or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = float(timeout)
        self._client: httpx.AsyncClient | None = None

    def _client_or_new(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _request_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "stream": True,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        acc = _StreamAccumulator(self.provider)
        started = time.perf_counter()
        try:
            async with self._client_or_new().stream(
                "POST",
                f"{self.base_url}/chat/completions",
                headers=self._request_headers(),
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise status_error(self.provider, response.status_code, _error_message(response, body))
                async for data in _sse_payloads(response):
                    if data.strip() == "[DONE]":
                        break
                    try:
                        acc.feed(json.loads(data))
                    except json.JSONDecodeError:
                        logger.debug("llm stream skipped non-json data (data=%r)", data[:200])
        except httpx.TimeoutException as exc:
            logger.warning("llm call timed out (provider=%s, model=%s, error=%s)", self.provider, self.model, exc)
            raise timeout_error(self.provider, str(exc)) from exc
        except httpx.TransportError as exc:
            logger.warning("llm call failed (provider=%s, model=%s, error=%s)", self.provider, self.model, exc)
            raise RetryableLLMError(self.provider, str(exc), error_code=ErrorCode.PROVIDER_FAILED) from exc

        result = acc.result()
        logger.info(
            "llm call (provider=%s, model=%s, latency_ms=%s, prompt_tokens=%s, completion_tokens=%s)",
            self.provider,
            self.model,
            int((time.perf_counter() - started) * 1000),
            getattr(result.usage, "prompt_tokens", None),
            getattr(result.usage, "completion_tokens", None),
        )
        return result

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
