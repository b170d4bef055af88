"""Retry policy applied at the enrichment boundary."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from sceneflow.config import Settings
from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import EnrichmentUnavailable, ProviderError
from sceneflow.providers.llm._retry import RetryableLLMError, log_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, EnrichmentUnavailable) and exc.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with exponential backoff; each attempt has a hard timeout.

    Every failure leaves as `EnrichmentUnavailable` so callers have exactly one
    exception to fall back on.
    """

    max_attempts: int = 3
    backoff_min_s: float = 0.5
    backoff_max_s: float = 4.0
    timeout_s: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=int(settings.retry.max_attempts),
            backoff_min_s=float(settings.retry.backoff_min_s),
            backoff_max_s=float(settings.retry.backoff_max_s),
            timeout_s=float(settings.enrichment.timeout_s),
        )

    async def _attempt(self, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(fn(), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            raise EnrichmentUnavailable(
                "enrichment",
                f"timed out after {self.timeout_s}s",
                error_code=ErrorCode.ENRICHMENT_TIMEOUT,
            ) from exc
        except EnrichmentUnavailable:
            raise
        except ProviderError as exc:
            raise EnrichmentUnavailable(
                exc.provider,
                exc.message,
                error_code=exc.error_code or ErrorCode.ENRICHMENT_FAILED,
                retryable=isinstance(exc, RetryableLLMError),
            ) from exc
        except Exception as exc:
            # Any other collaborator failure is treated as "not available".
            raise EnrichmentUnavailable(
                "enrichment",
                f"{type(exc).__name__}: {exc}",
                error_code=ErrorCode.ENRICHMENT_FAILED,
                retryable=False,
            ) from exc

    async def call(self, fn: Callable[[], Awaitable[T]], *, what: str = "enrichment") -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, int(self.max_attempts))),
            wait=wait_exponential(min=self.backoff_min_s, max=self.backoff_max_s),
            retry=retry_if_exception(_is_retryable),
            before_sleep=log_retry(logger, what),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._attempt(fn)
        raise RuntimeError("retry loop exited without a result")  # pragma: no cover
