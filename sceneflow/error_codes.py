"""Canonical error codes surfaced to callers."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_TRANSCRIPT = "INVALID_TRANSCRIPT"

    CLASSIFICATION_FAILED = "CLASSIFICATION_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    LAYOUT_FAILED = "LAYOUT_FAILED"

    ENRICHMENT_FAILED = "ENRICHMENT_FAILED"
    ENRICHMENT_TIMEOUT = "ENRICHMENT_TIMEOUT"
    PROVIDER_FAILED = "PROVIDER_FAILED"

    CANCELLED = "CANCELLED"
