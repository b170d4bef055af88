from __future__ import annotations

import pytest

from sceneflow.models.scene import Archetype
from sceneflow.utils import keyword_scorer
from sceneflow.utils.diagram_classifier import DiagramClassifier, DiagramClassifierConfig


def test_flow_sequence_is_classified_as_flow() -> None:
    result = DiagramClassifier().classify("First do A, then B, finally C.")
    assert result.archetype == Archetype.FLOW
    assert result.confidence > 0.6
    assert result.low_confidence is False


def test_org_chart_is_classified_as_tree() -> None:
    result = DiagramClassifier().classify("The CEO oversees VPs who manage directors and teams.")
    assert result.archetype == Archetype.TREE
    assert result.pattern_breakdown[Archetype.TREE] > 0


def test_comparison_is_matrix_not_flow() -> None:
    text = "We compare option A versus option B across cost and features criteria."
    result = DiagramClassifier().classify(text)
    assert result.archetype == Archetype.MATRIX
    assert result.score_breakdown[Archetype.FLOW] == 0.0
    # "compare" and "versus" push flow below zero before clamping.
    assert keyword_scorer.keyword_score(text, Archetype.FLOW) < 0


def test_timeline_dates_get_pattern_bonus() -> None:
    text = "In 1998 the company was founded, in 2004 it went public and in 2015 it expanded."
    result = DiagramClassifier().classify(text)
    assert result.archetype == Archetype.TIMELINE
    assert keyword_scorer.pattern_bonus(text, Archetype.TIMELINE) == 30.0


def test_cycle_keywords() -> None:
    result = DiagramClassifier().classify("It is a feedback loop: the cycle repeats again and again.")
    assert result.archetype == Archetype.CYCLE


def test_no_signal_falls_back_to_flow_with_low_confidence() -> None:
    clf = DiagramClassifier()
    result = clf.classify("hello there everyone")
    assert result.archetype == Archetype.FLOW
    assert result.low_confidence is True
    assert result.confidence == pytest.approx(clf.config.fallback_confidence)


def test_empty_text_scores_zero() -> None:
    assert keyword_scorer.score_all("") == {a: 0.0 for a in Archetype}


@pytest.mark.parametrize(
    "text",
    [
        "First do A, then B, finally C.",
        "The CEO oversees VPs who manage directors and teams.",
        "We compare option A versus option B across cost and features criteria.",
        "In 1998 the company was founded and in 2004 it went public.",
        "The water cycle is a continuous loop.",
        "Data flows through the pipeline step by step.",
    ],
)
def test_rescoring_chosen_archetype_clears_threshold(text: str) -> None:
    clf = DiagramClassifier()
    result = clf.classify(text)
    assert not result.low_confidence
    rescored = keyword_scorer.score(text, result.archetype, pattern_cap=clf.config.pattern_bonus_cap)
    assert clf.confidence_for(rescored) >= clf.threshold_confidence
    assert clf.confidence_for(rescored) == pytest.approx(result.confidence)


def test_confidence_is_capped() -> None:
    clf = DiagramClassifier(DiagramClassifierConfig(normalizing_constant=10.0, max_confidence=0.9))
    assert clf.confidence_for(1000.0) == pytest.approx(0.9)
    assert clf.confidence_for(-5.0) == 0.0


def test_count_occurrences_matches_whole_words_and_plurals() -> None:
    assert keyword_scorer.count_occurrences("steps and step, but not stepping", "step") == 2
    assert keyword_scorer.count_occurrences("she reports  to him", "reports to") == 1


def test_every_archetype_has_a_keyword_table() -> None:
    for archetype in Archetype:
        table = keyword_scorer.keyword_table(archetype)
        assert table.primary
        assert table.negative
