"""SceneFlow exception hierarchy."""

from __future__ import annotations

from sceneflow.error_codes import ErrorCode


class SceneFlowError(Exception):
    """Base error for SceneFlow."""


class ConfigurationError(SceneFlowError):
    """Raised when configuration or inputs are invalid."""


class SegmentationError(ConfigurationError):
    """Raised for a malformed or empty transcript. Never retried."""

    error_code = ErrorCode.INVALID_TRANSCRIPT


class InvalidGraphError(SceneFlowError):
    """Raised when a node/edge set breaks the structural contract."""


class PipelineCancelled(SceneFlowError):
    """Raised when a job-level cancellation is observed."""

    error_code = ErrorCode.CANCELLED


class ProviderError(SceneFlowError):
    """Raised when an external provider call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.error_code = error_code


class EnrichmentUnavailable(ProviderError):
    """Semantic enrichment timed out, failed, or returned unusable output.

    Recovered locally by the rule-based extractor (reported as extraction degraded).
    Malformed payloads are not retryable; timeouts and transport failures are.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = ErrorCode.ENRICHMENT_FAILED,
        retryable: bool = True,
    ) -> None:
        super().__init__(provider, message, error_code=error_code)
        self.retryable = bool(retryable)


class StageExecutionError(SceneFlowError):
    """Raised when a pipeline stage fails for a scene (job failure)."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        scene_index: int | None = None,
        error_code: ErrorCode | str | None = None,
        last_completed_stage: str | None = None,
    ) -> None:
        prefix = f"{stage}"
        if scene_index is not None:
            prefix = f"{prefix} (scene_index={scene_index})"
        super().__init__(f"{prefix}: {message}")
        self.stage = stage
        self.scene_index = scene_index
        self.message = message
        self.error_code = error_code
        self.last_completed_stage = last_completed_stage
