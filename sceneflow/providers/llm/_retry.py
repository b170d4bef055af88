"""Error classification shared by the LLM providers.

Providers never retry by themselves. They only decide whether a failure is
transient (`RetryableLLMError`) so the enrichment `RetryPolicy` can act on it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from tenacity import RetryCallState

from sceneflow.error_codes import ErrorCode
from sceneflow.exceptions import ProviderError


class RetryableLLMError(ProviderError):
    """Transient LLM error (timeout, 5xx, rate limit)."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        rate_limited: bool = False,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(provider, message, error_code=error_code)
        self.rate_limited = bool(rate_limited)


def status_error(provider: str, status_code: int, message: str) -> ProviderError:
    """Map an HTTP status from an LLM backend to the matching provider error."""
    if status_code == 429:
        return RetryableLLMError(provider, message, rate_limited=True, error_code=ErrorCode.PROVIDER_FAILED)
    if status_code >= 500:
        return RetryableLLMError(provider, message, error_code=ErrorCode.PROVIDER_FAILED)
    return ProviderError(provider, message, error_code=ErrorCode.PROVIDER_FAILED)


def timeout_error(provider: str, message: str) -> RetryableLLMError:
    return RetryableLLMError(provider, message, error_code=ErrorCode.ENRICHMENT_TIMEOUT)


def log_retry(logger: logging.Logger, what: str) -> Callable[[RetryCallState], None]:
    """tenacity `before_sleep` hook in the package's log format."""

    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        wait_s = state.next_action.sleep if state.next_action else None
        logger.warning(
            "%s retrying (attempt=%s, wait_s=%s, error=%s)",
            what,
            state.attempt_number,
            wait_s,
            exc,
        )

    return _log
