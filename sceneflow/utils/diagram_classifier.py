"""Diagram archetype classification on top of the keyword/pattern scorer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sceneflow.config import ClassifierConfig
from sceneflow.models.scene import Archetype, ClassificationResult
from sceneflow.utils import keyword_scorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagramClassifierConfig:
    normalizing_constant: float = 40.0
    max_confidence: float = 0.95
    min_score: float = 3.0
    fallback_confidence: float = 0.3
    tie_ratio: float = 0.05
    pattern_bonus_cap: float = 50.0
    fallback_archetype: Archetype = Archetype.FLOW

    @classmethod
    def from_settings(cls, cfg: ClassifierConfig) -> "DiagramClassifierConfig":
        return cls(
            normalizing_constant=float(cfg.normalizing_constant),
            max_confidence=float(cfg.max_confidence),
            min_score=float(cfg.min_score),
            fallback_confidence=float(cfg.fallback_confidence),
            tie_ratio=float(cfg.tie_ratio),
            pattern_bonus_cap=float(cfg.pattern_bonus_cap),
        )


class DiagramClassifier:
    """Pick the best-fit archetype for a text span.

    - arg-max over per-archetype scores
    - near-ties (within `tie_ratio` of the leader) go to the archetype with the
      larger structural-pattern bonus
    - a leader at or below `min_score` falls back to flow at fixed confidence
    """

    def __init__(self, config: DiagramClassifierConfig | None = None) -> None:
        self.config = config or DiagramClassifierConfig()

    def confidence_for(self, score: float) -> float:
        cfg = self.config
        return max(0.0, min(cfg.max_confidence, float(score) / cfg.normalizing_constant))

    @property
    def threshold_confidence(self) -> float:
        """Confidence corresponding to the minimum score needed to select an archetype."""
        return self.confidence_for(self.config.min_score)

    def classify(self, text: str) -> ClassificationResult:
        cfg = self.config
        scores = keyword_scorer.score_all(text, pattern_cap=cfg.pattern_bonus_cap)
        bonuses = {
            a: keyword_scorer.pattern_bonus(text, a, cap=cfg.pattern_bonus_cap) for a in Archetype
        }

        # Enum order is the stable secondary key.
        ranked = sorted(Archetype, key=lambda a: -scores[a])
        best = ranked[0]
        top = scores[best]

        if top <= cfg.min_score:
            logger.info(
                "classification low confidence (top_score=%.1f, min_score=%.1f, fallback=%s)",
                top,
                cfg.min_score,
                cfg.fallback_archetype.value,
            )
            return ClassificationResult(
                archetype=cfg.fallback_archetype,
                confidence=float(cfg.fallback_confidence),
                score_breakdown=scores,
                pattern_breakdown=bonuses,
                low_confidence=True,
            )

        contenders = [a for a in ranked if top - scores[a] <= cfg.tie_ratio * top]
        if len(contenders) > 1:
            chosen = max(contenders, key=lambda a: (bonuses[a], scores[a], -list(Archetype).index(a)))
            if chosen != best:
                logger.debug(
                    "classification tie-break (leader=%s, chosen=%s, bonus=%.1f)",
                    best.value,
                    chosen.value,
                    bonuses[chosen],
                )
            best = chosen

        result = ClassificationResult(
            archetype=best,
            confidence=self.confidence_for(scores[best]),
            score_breakdown=scores,
            pattern_breakdown=bonuses,
        )
        logger.debug(
            "classified (archetype=%s, confidence=%.2f, scores=%s)",
            result.archetype.value,
            result.confidence,
            {a.value: round(s, 1) for a, s in scores.items()},
        )
        return result
