"""Greedy transcript-to-scene segmentation.

Consecutive transcript segments are accumulated into one scene until one of:
- a pause between segments reaches `pause_gap_ms` (always cuts)
- the scene has reached `max_scene_length_ms` (forced cut)
- the next segment opens with a discourse marker ("next", "finally", ...) or
  shifts the dominant archetype signal, once the scene is at least
  `min_scene_length_ms` long

Undersized scenes are then merged into their predecessor (or, for the first
scene, absorb their successor). Scene time ranges are made contiguous: each
scene ends where the next one starts and together they cover
[min(start_ms), max(end_ms)] of the input.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from sceneflow.config import SegmentationConfig
from sceneflow.exceptions import SegmentationError
from sceneflow.models.scene import Archetype, Scene
from sceneflow.models.transcript import TranscriptSegment
from sceneflow.utils import keyword_scorer

logger = logging.getLogger(__name__)

_LEADING_NOISE_RE = re.compile(r"^[\s\"'“”‘’(\[\-–—,.…]+")


@dataclass(frozen=True)
class SceneSegmenterConfig:
    max_scene_length_ms: int = 30_000
    min_scene_length_ms: int = 3_000
    pause_gap_ms: int = 1_500
    discourse_markers: tuple[str, ...] = ("next", "first", "second", "third", "finally", "then")
    topic_shift_enabled: bool = True
    topic_shift_min_score: float = 10.0
    pattern_cap: float = keyword_scorer.DEFAULT_PATTERN_CAP

    @classmethod
    def from_settings(cls, cfg: SegmentationConfig, *, pattern_cap: float | None = None) -> "SceneSegmenterConfig":
        return cls(
            max_scene_length_ms=int(cfg.max_scene_length_ms),
            min_scene_length_ms=int(cfg.min_scene_length_ms),
            pause_gap_ms=int(cfg.pause_gap_ms),
            discourse_markers=tuple(str(m).strip().lower() for m in cfg.discourse_markers if str(m).strip()),
            topic_shift_enabled=bool(cfg.topic_shift_enabled),
            topic_shift_min_score=float(cfg.topic_shift_min_score),
            pattern_cap=float(keyword_scorer.DEFAULT_PATTERN_CAP if pattern_cap is None else pattern_cap),
        )


@dataclass
class _Group:
    segments: list[TranscriptSegment] = field(default_factory=list)

    @property
    def start_ms(self) -> int:
        return int(self.segments[0].start_ms)

    @property
    def end_ms(self) -> int:
        return max(int(s.end_ms) for s in self.segments)

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    @property
    def text(self) -> str:
        return " ".join(s.text.strip() for s in self.segments if s.text.strip())


def _check_segment(i: int, seg: TranscriptSegment) -> None:
    if not isinstance(seg.text, str):
        raise TypeError(f"text must be a string, got {type(seg.text).__name__}")
    for name in ("start_ms", "end_ms"):
        value = getattr(seg, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if int(seg.start_ms) < 0:
        raise SegmentationError(f"segment {i} has negative start_ms={seg.start_ms}")
    if int(seg.end_ms) <= int(seg.start_ms):
        raise SegmentationError(f"segment {i} has end_ms={seg.end_ms} <= start_ms={seg.start_ms}")
    if not 0.0 <= float(seg.confidence) <= 1.0:
        raise SegmentationError(f"segment {i} has confidence={seg.confidence} outside [0, 1]")


def validate_transcript(transcript: Sequence[TranscriptSegment]) -> list[TranscriptSegment]:
    """Reject malformed input; return segments ordered by start time."""
    segments = list(transcript or [])
    if not segments:
        raise SegmentationError("transcript is empty")
    for i, seg in enumerate(segments):
        try:
            _check_segment(i, seg)
        except (AttributeError, TypeError, ValueError) as exc:
            raise SegmentationError(f"segment {i} is malformed: {exc}") from exc
    if not any(seg.text.strip() for seg in segments):
        raise SegmentationError("transcript has no text")
    return sorted(segments, key=lambda s: int(s.start_ms))


class SceneSegmenter:
    def __init__(self, config: SceneSegmenterConfig | None = None) -> None:
        self.config = config or SceneSegmenterConfig()
        markers = sorted(self.config.discourse_markers, key=len, reverse=True)
        latin = [m for m in markers if m.isascii()]
        other = [m for m in markers if not m.isascii()]
        parts: list[str] = []
        if latin:
            parts.append(r"(?:" + "|".join(re.escape(m) for m in latin) + r")(?![\w-])")
        if other:
            parts.append(r"(?:" + "|".join(re.escape(m) for m in other) + r")")
        self._marker_re = re.compile(r"^(?:" + "|".join(parts) + r")") if parts else None

    def starts_with_discourse_marker(self, text: str) -> bool:
        if self._marker_re is None:
            return False
        head = _LEADING_NOISE_RE.sub("", (text or "").lower())
        return bool(self._marker_re.match(head))

    def _dominant(self, text: str) -> Archetype | None:
        scores = keyword_scorer.score_all(text, pattern_cap=self.config.pattern_cap)
        best = max(Archetype, key=lambda a: scores[a])
        if scores[best] < self.config.topic_shift_min_score:
            return None
        return best

    def _topic_shift(self, group: _Group, seg: TranscriptSegment) -> bool:
        if not self.config.topic_shift_enabled:
            return False
        incoming = self._dominant(seg.text)
        if incoming is None:
            return False
        current = self._dominant(group.text)
        return current is not None and current != incoming

    def _is_boundary(self, group: _Group, seg: TranscriptSegment) -> bool:
        cfg = self.config
        gap = int(seg.start_ms) - group.end_ms
        if gap >= cfg.pause_gap_ms:
            return True
        if group.duration_ms >= cfg.max_scene_length_ms:
            return True
        if group.duration_ms < cfg.min_scene_length_ms:
            return False
        return self.starts_with_discourse_marker(seg.text) or self._topic_shift(group, seg)

    def _merge_undersized(self, groups: list[_Group]) -> list[_Group]:
        min_len = self.config.min_scene_length_ms
        merged: list[_Group] = []
        for group in groups:
            if merged and (group.duration_ms < min_len or merged[-1].duration_ms < min_len):
                merged[-1].segments.extend(group.segments)
                continue
            merged.append(group)
        return merged

    def segment(self, transcript: Sequence[TranscriptSegment]) -> list[Scene]:
        """Group transcript segments into scene shells (no nodes/edges yet)."""
        segments = validate_transcript(transcript)

        groups: list[_Group] = [_Group(segments=[segments[0]])]
        for seg in segments[1:]:
            if self._is_boundary(groups[-1], seg):
                groups.append(_Group(segments=[seg]))
            else:
                groups[-1].segments.append(seg)

        raw_count = len(groups)
        groups = self._merge_undersized(groups)

        coverage_end = max(int(s.end_ms) for s in segments)
        scenes: list[Scene] = []
        for i, group in enumerate(groups):
            end_ms = groups[i + 1].start_ms if i + 1 < len(groups) else coverage_end
            scenes.append(
                Scene(
                    id=f"scene-{i + 1:03d}",
                    start_ms=group.start_ms,
                    duration_ms=max(1, end_ms - group.start_ms),
                    text_span=group.text,
                )
            )

        logger.info(
            "segmentation done (segments=%d, scenes=%d, merged=%d)",
            len(segments),
            len(scenes),
            raw_count - len(scenes),
        )
        return scenes
