"""Timed transcript input."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TranscriptSegment:
    """One timed utterance from the transcription collaborator (milliseconds)."""

    text: str
    start_ms: int
    end_ms: int
    confidence: float = 1.0

    @property
    def duration_ms(self) -> int:
        return int(self.end_ms) - int(self.start_ms)
