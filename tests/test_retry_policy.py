from __future__ import annotations

import asyncio

import pytest

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import EnrichmentUnavailable, ProviderError
from sceneflow.pipeline.retry import RetryPolicy
from sceneflow.providers.llm._retry import RetryableLLMError


def _policy(**kwargs) -> RetryPolicy:  # noqa: ANN003
    base = {"max_attempts": 3, "backoff_min_s": 0.0, "backoff_max_s": 0.0, "timeout_s": 0.05}
    base.update(kwargs)
    return RetryPolicy(**base)


@pytest.mark.asyncio
async def test_retries_transient_failures_then_succeeds() -> None:
    calls = 0

    async def _fn() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise RetryableLLMError("fake", "503")
        return "ok"

    assert await _policy().call(_fn) == "ok"
    assert calls == 3


@pytest.mark.asyncio
async def test_timeout_is_retried_and_surfaces_as_enrichment_timeout() -> None:
    calls = 0

    async def _hang() -> str:
        nonlocal calls
        calls += 1
        await asyncio.sleep(10)
        return "never"

    with pytest.raises(EnrichmentUnavailable) as exc_info:
        await _policy(max_attempts=2).call(_hang)
    assert exc_info.value.error_code == ErrorCode.ENRICHMENT_TIMEOUT
    assert calls == 2


@pytest.mark.asyncio
async def test_non_retryable_provider_error_fails_fast() -> None:
    calls = 0

    async def _fn() -> str:
        nonlocal calls
        calls += 1
        raise ProviderError("fake", "401 unauthorized", error_code=ErrorCode.PROVIDER_FAILED)

    with pytest.raises(EnrichmentUnavailable) as exc_info:
        await _policy().call(_fn)
    assert exc_info.value.retryable is False
    assert calls == 1


@pytest.mark.asyncio
async def test_unexpected_errors_are_treated_as_unavailable() -> None:
    async def _fn() -> str:
        raise KeyError("entities")

    with pytest.raises(EnrichmentUnavailable) as exc_info:
        await _policy().call(_fn)
    assert exc_info.value.error_code == ErrorCode.ENRICHMENT_FAILED


def test_from_settings_uses_enrichment_timeout(settings) -> None:
    settings.retry.max_attempts = 5
    policy = RetryPolicy.from_settings(settings)
    assert policy.max_attempts == 5
    assert policy.timeout_s == pytest.approx(settings.enrichment.timeout_s)
