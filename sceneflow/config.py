"""Configuration management using pydantic-settings."""

from typing import Any

from pydantic import Field, model_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict

from sceneflow.exceptions import ConfigurationError

_ENV_FILES = (".env", "../.env")

_DEFAULT_DISCOURSE_MARKERS = (
    "next",
    "first",
    "second",
    "third",
    "fourth",
    "finally",
    "lastly",
    "then",
    "now",
    "moving on",
    "another",
    "in addition",
    "on the other hand",
    "次に",
    "それでは",
    "続いて",
    "一方",
    "また",
)


class SegmentationConfig(BaseSettings):
    """Scene segmentation thresholds (milliseconds)."""

    model_config = SettingsConfigDict(
        env_prefix="SEGMENT_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_scene_length_ms: int = Field(default=30_000, gt=0)
    min_scene_length_ms: int = Field(default=3_000, ge=0)
    pause_gap_ms: int = Field(default=1_500, gt=0)
    discourse_markers: tuple[str, ...] = _DEFAULT_DISCOURSE_MARKERS
    # Cut on a change of dominant archetype signal between the scene and the next segment.
    topic_shift_enabled: bool = True
    topic_shift_min_score: float = Field(default=10.0, ge=0)

    @model_validator(mode="after")
    def _validate_lengths(self) -> "SegmentationConfig":
        if int(self.min_scene_length_ms) > int(self.max_scene_length_ms):
            raise ConfigurationError(
                "SEGMENT_MIN_SCENE_LENGTH_MS must be <= SEGMENT_MAX_SCENE_LENGTH_MS"
            )
        return self


class ClassifierConfig(BaseSettings):
    """Diagram archetype classifier tuning."""

    model_config = SettingsConfigDict(
        env_prefix="CLASSIFIER_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    normalizing_constant: float = Field(
        default=40.0, gt=0, description="Score at which confidence saturates (~p90 of observed scores)."
    )
    max_confidence: float = Field(default=0.95, gt=0, le=1)
    min_score: float = Field(default=3.0, ge=0)
    fallback_confidence: float = Field(default=0.3, ge=0, le=1)
    tie_ratio: float = Field(default=0.05, ge=0, lt=1)
    pattern_bonus_cap: float = Field(default=50.0, ge=0)


class ExtractionConfig(BaseSettings):
    """Rule-based entity/relation extraction limits."""

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_nodes: int = Field(default=20, ge=2)
    node_min_width: float = Field(default=120.0, gt=0)
    node_max_width: float = Field(default=280.0, gt=0)
    node_height: float = Field(default=60.0, gt=0)
    char_width: float = Field(default=9.0, gt=0)
    max_label_chars: int = Field(default=32, ge=4)

    @model_validator(mode="after")
    def _validate_widths(self) -> "ExtractionConfig":
        if float(self.node_max_width) < float(self.node_min_width):
            raise ConfigurationError("EXTRACTION_NODE_MAX_WIDTH must be >= EXTRACTION_NODE_MIN_WIDTH")
        return self


class LayoutConfig(BaseSettings):
    """Zero-overlap layout engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LAYOUT_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    canvas_width: float = Field(default=1920.0, gt=0)
    canvas_height: float = Field(default=1080.0, gt=0)
    margin: float = Field(default=50.0, ge=0)
    min_spacing: float = Field(default=40.0, ge=0)
    rank_separation: float = Field(default=100.0, ge=0)
    node_separation: float = Field(default=60.0, ge=0)
    max_iterations: int = Field(default=300, ge=1)
    separation_multiplier: float = Field(default=2.0, gt=0)
    damping: float = Field(default=0.9, gt=0, le=1)
    log_every: int = Field(default=50, ge=1)
    parallel_edge_offset: float = Field(default=18.0, ge=0)


class EnrichmentConfig(BaseSettings):
    """Optional LLM-backed semantic analysis collaborator."""

    model_config = SettingsConfigDict(
        env_prefix="ENRICHMENT_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = False
    provider: str = "anthropic"
    base_url: str | None = None
    api_key: str = ""
    model: str = "claude-sonnet-4-20250514"
    timeout_s: float = Field(default=20.0, gt=0)


class RetryConfig(BaseSettings):
    """Retry policy applied at the enrichment boundary."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1)
    backoff_min_s: float = Field(default=0.5, ge=0)
    backoff_max_s: float = Field(default=4.0, ge=0)


class CacheConfig(BaseSettings):
    """Per-job scene cache (LRU)."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = True
    max_entries: int = Field(default=256, ge=1)


class ConcurrencyConfig(BaseSettings):
    """Concurrency limits by work type."""

    model_config = SettingsConfigDict(
        env_prefix="CONCURRENCY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    scene_workers: int = Field(
        default=4,
        ge=1,
        validation_alias=AliasChoices("scene_workers", "CONCURRENCY_SCENES"),
    )
    enrichment: int = Field(default=2, ge=1)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    log_dir: str = "./logs"
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    segmentation: SegmentationConfig = SegmentationConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    extraction: ExtractionConfig = ExtractionConfig()
    layout: LayoutConfig = LayoutConfig()
    enrichment: EnrichmentConfig = EnrichmentConfig()
    retry: RetryConfig = RetryConfig()
    cache: CacheConfig = CacheConfig()
    concurrency: ConcurrencyConfig = ConcurrencyConfig()
    logging: LoggingSettings = LoggingSettings()

    def enrichment_config(self) -> dict[str, Any] | None:
        """Return a provider config dict for the registry, or None when disabled."""
        if not self.enrichment.enabled:
            return None
        cfg = self.enrichment.model_dump()
        provider = str(cfg.get("provider") or "").strip().lower()
        if not provider:
            raise ConfigurationError("enrichment is enabled but ENRICHMENT_PROVIDER is empty")
        if not str(cfg.get("api_key") or "").strip():
            raise ConfigurationError(f"enrichment provider {provider!r} is missing ENRICHMENT_API_KEY")

        base_url = str(cfg.get("base_url") or "").strip()
        if provider in {"openai", "openai_compat"}:
            cfg["base_url"] = base_url or "https://api.openai.com/v1"
        elif base_url:
            cfg["base_url"] = base_url
        else:
            cfg.pop("base_url", None)
        cfg["provider"] = provider
        return cfg

    def fingerprint_payload(self) -> dict[str, Any]:
        """Config subset that changes scene output (used in cache keys)."""
        return {
            "classifier": self.classifier.model_dump(),
            "extraction": self.extraction.model_dump(),
            "layout": self.layout.model_dump(),
            "enrichment": {
                "enabled": bool(self.enrichment.enabled),
                "provider": self.enrichment.provider,
                "model": self.enrichment.model,
            },
        }
