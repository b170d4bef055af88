from __future__ import annotations

import json

import httpx
import pytest

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import ConfigurationError, EnrichmentUnavailable, ProviderError
from sceneflow.providers.enrichment import LLMSemanticAnalyzer, SemanticAnalyzer
from sceneflow.providers.llm import LLMCompletionResult, LLMProvider, Message, RetryableLLMError
from sceneflow.providers.llm.openai_compat import OpenAICompatProvider
from sceneflow.providers.registry import get_llm_provider, get_semantic_analyzer


class _FakeLLM(LLMProvider):
    provider = "fake"

    def __init__(self, *, text: str = "", exc: Exception | None = None) -> None:
        self.text = text
        self.exc = exc
        self.messages: list[Message] = []
        self.closed = False

    async def complete_with_usage(self, messages, temperature=0.3, max_tokens=None):  # noqa: ANN001, ARG002
        self.messages = list(messages)
        if self.exc is not None:
            raise self.exc
        return LLMCompletionResult(text=self.text)

    async def close(self) -> None:
        self.closed = True


def _sse(*events: object) -> bytes:
    chunks = [f"data: {json.dumps(e)}\n\n" for e in events]
    chunks.append("data: [DONE]\n\n")
    return "".join(chunks).encode("utf-8")


def _openai_with(handler) -> OpenAICompatProvider:  # noqa: ANN001
    provider = OpenAICompatProvider(api_key="k", model="m", base_url="http://llm.test/v1")
    provider._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return provider


@pytest.mark.asyncio
async def test_openai_compat_streams_text_and_usage() -> None:
    seen: dict[str, object] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        body = _sse(
            {"choices": [{"delta": {"content": "Hel"}}]},
            {"choices": [{"delta": {"content": "lo"}}]},
            {"choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}},
        )
        return httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})

    provider = _openai_with(_handler)
    result = await provider.complete_with_usage([Message(role="user", content="hi")], max_tokens=10)
    await provider.close()

    assert result.text == "Hello"
    assert result.usage is not None and result.usage.total_tokens == 7
    assert seen["url"] == "http://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer k"
    assert seen["body"]["stream"] is True
    assert seen["body"]["max_tokens"] == 10


@pytest.mark.asyncio
async def test_openai_compat_maps_rate_limit_to_retryable() -> None:
    provider = _openai_with(lambda request: httpx.Response(429, content=b"slow down"))
    with pytest.raises(RetryableLLMError) as exc_info:
        await provider.complete([Message(role="user", content="hi")])
    assert exc_info.value.rate_limited is True
    await provider.close()


@pytest.mark.asyncio
async def test_openai_compat_client_errors_are_not_retryable() -> None:
    provider = _openai_with(lambda request: httpx.Response(400, content=b"bad request"))
    with pytest.raises(ProviderError) as exc_info:
        await provider.complete([Message(role="user", content="hi")])
    assert not isinstance(exc_info.value, RetryableLLMError)
    assert "HTTP 400" in str(exc_info.value)
    await provider.close()


@pytest.mark.asyncio
async def test_openai_compat_timeout_is_retryable() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    provider = _openai_with(_handler)
    with pytest.raises(RetryableLLMError) as exc_info:
        await provider.complete([Message(role="user", content="hi")])
    assert exc_info.value.error_code == ErrorCode.ENRICHMENT_TIMEOUT
    await provider.close()


@pytest.mark.asyncio
async def test_semantic_analyzer_parses_fenced_payload() -> None:
    llm = _FakeLLM(
        text='```json\n{"nodes": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}], '
        '"edges": [{"from": "a", "to": "b"}]}\n```'
    )
    analyzer = LLMSemanticAnalyzer(llm, max_entities=5)
    payload = await analyzer.analyze("A then B")

    assert isinstance(analyzer, SemanticAnalyzer)
    assert [e["id"] for e in payload["entities"]] == ["a", "b"]
    assert payload["relations"] == [{"from": "a", "to": "b"}]
    assert llm.messages[0].role == "system"
    assert "At most 5 entities" in llm.messages[0].content
    await analyzer.close()
    assert llm.closed is True


@pytest.mark.asyncio
async def test_semantic_analyzer_malformed_output_is_not_retryable() -> None:
    analyzer = LLMSemanticAnalyzer(_FakeLLM(text="sorry, I cannot help"))
    with pytest.raises(EnrichmentUnavailable) as exc_info:
        await analyzer.analyze("text")
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_semantic_analyzer_transient_errors_are_retryable() -> None:
    analyzer = LLMSemanticAnalyzer(_FakeLLM(exc=RetryableLLMError("fake", "503")))
    with pytest.raises(EnrichmentUnavailable) as exc_info:
        await analyzer.analyze("text")
    assert exc_info.value.retryable is True


def test_registry_builds_openai_compatible_provider() -> None:
    provider = get_llm_provider({"provider": "openai", "api_key": "k", "model": "m", "timeout_s": 3})
    assert isinstance(provider, OpenAICompatProvider)
    assert provider.timeout == 3.0
    assert provider.base_url == "https://api.openai.com/v1"


def test_registry_rejects_unknown_or_unconfigured_providers() -> None:
    with pytest.raises(ConfigurationError):
        get_llm_provider({"provider": "nope"})
    with pytest.raises(ConfigurationError):
        get_llm_provider({"provider": "anthropic", "api_key": ""})


def test_semantic_analyzer_disabled_without_config() -> None:
    assert get_semantic_analyzer(None) is None
    analyzer = get_semantic_analyzer({"provider": "openai", "api_key": "k"}, max_entities=7)
    assert isinstance(analyzer, LLMSemanticAnalyzer)
    assert analyzer.max_entities == 7


@pytest.mark.parametrize(
    ("status", "retryable", "rate_limited"),
    [(429, True, True), (503, True, False), (401, False, False)],
)
def test_status_error_classification(status: int, retryable: bool, rate_limited: bool) -> None:
    from sceneflow.providers.llm._retry import status_error

    error = status_error("p", status, f"HTTP {status}")
    assert isinstance(error, RetryableLLMError) is retryable
    assert getattr(error, "rate_limited", False) is rate_limited
    assert error.error_code == ErrorCode.PROVIDER_FAILED


def test_anthropic_request_splits_system_prompt() -> None:
    from sceneflow.providers.llm.anthropic import AnthropicProvider, _build_request

    system, turns = _build_request(
        [
            Message(role="system", content="rules"),
            Message(role="user", content="text"),
            Message(role="tool", content="odd"),
        ]
    )
    assert system == "rules"
    assert turns == [{"role": "user", "content": "text"}, {"role": "user", "content": "odd"}]

    provider = AnthropicProvider(api_key="k", base_url="https://proxy.test/v1/")
    assert provider.base_url == "https://proxy.test"
    with pytest.raises(ValueError):
        AnthropicProvider(api_key="")
