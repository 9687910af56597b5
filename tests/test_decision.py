"""
Unit tests for classifier.decision.
"""

import random

import pytest

from classifier.decision import (
    CONFIDENCE_THRESHOLD,
    FALLBACK_LABEL,
    FALLBACK_SCORE,
    ClassificationResult,
    DecisionBranch,
    InferenceState,
    Verdict,
    decide,
    decision_branch,
    fallback_verdict,
    resolve,
)


def _returning(label, score):
    return lambda image: ClassificationResult(label, score)


class TestDecide:
    """Tests for the fresh / rotten decision rule."""

    def test_fresh_keyword_high_score(self):
        """Fresh Apple at 0.92 is fresh."""
        verdict = decide(ClassificationResult("Fresh Apple", 0.92))
        assert verdict == Verdict("Fresh Apple", 0.92, is_rotten=False)

    def test_rotten_keyword_overrides_high_score(self):
        """Moldy Banana at 0.99 is rotten despite the confident score."""
        verdict = decide(ClassificationResult("Moldy Banana", 0.99))
        assert verdict.is_rotten is True
        assert verdict.label == "Moldy Banana"

    def test_unknown_label_low_score_is_rotten(self):
        verdict = decide(ClassificationResult("Unidentified Object", 0.40))
        assert verdict.is_rotten is True

    def test_unknown_label_high_score_is_fresh(self):
        verdict = decide(ClassificationResult("Unidentified Object", 0.85))
        assert verdict.is_rotten is False

    def test_threshold_is_inclusive_for_fresh(self):
        """A score exactly at the threshold counts as confident."""
        assert decide(ClassificationResult("Granny Smith", CONFIDENCE_THRESHOLD)).is_rotten is False
        assert decide(ClassificationResult("Granny Smith", 0.6999)).is_rotten is True

    def test_fresh_keyword_low_score_still_fresh(self):
        assert decide(ClassificationResult("ripe mango", 0.05)).is_rotten is False

    def test_rotten_keyword_wins_over_fresh_keyword(self):
        """A label with both kinds of keyword is rotten."""
        assert decide(ClassificationResult("not fresh, spoiled", 0.95)).is_rotten is True

    def test_case_insensitive(self):
        assert decide(ClassificationResult("ROTTEN TOMATO", 0.9)).is_rotten is True
        assert decide(ClassificationResult("HeAlThY kale", 0.1)).is_rotten is False

    def test_keywords_match_as_substrings(self):
        """Dataset-style labels like 'rottenapples' still match."""
        assert decide(ClassificationResult("rottenapples", 0.9)).is_rotten is True
        assert decide(ClassificationResult("freshbanana", 0.6)).is_rotten is False

    def test_verdict_is_not_degraded(self):
        assert decide(ClassificationResult("fresh", 0.9)).degraded is False

    def test_verdict_is_immutable(self):
        verdict = decide(ClassificationResult("fresh", 0.9))
        with pytest.raises(AttributeError):
            verdict.is_rotten = True


class TestDecisionBranch:
    """Exactly one branch applies to every label."""

    @pytest.mark.parametrize(
        "label, branch",
        [
            ("Moldy Banana", DecisionBranch.ROTTEN_KEYWORD),
            ("bad egg", DecisionBranch.ROTTEN_KEYWORD),
            ("diseased leaf", DecisionBranch.ROTTEN_KEYWORD),
            ("decayed pear", DecisionBranch.ROTTEN_KEYWORD),
            ("Fresh Apple", DecisionBranch.FRESH_KEYWORD),
            ("good orange", DecisionBranch.FRESH_KEYWORD),
            ("Unidentified Object", DecisionBranch.SCORE_THRESHOLD),
            ("", DecisionBranch.SCORE_THRESHOLD),
        ],
    )
    def test_branch(self, label, branch):
        assert decision_branch(label) is branch

    def test_pure_over_many_inputs(self):
        """Same inputs always give the same verdict."""
        rng = random.Random(3)
        labels = ["Fresh Apple", "Moldy Banana", "Unidentified Object", "kiwi", "spoiled milk"]
        for _ in range(200):
            label = rng.choice(labels)
            score = rng.random()
            first = decide(ClassificationResult(label, score))
            second = decide(ClassificationResult(label, score))
            assert first == second
            branch = decision_branch(label)
            if branch is DecisionBranch.ROTTEN_KEYWORD:
                assert first.is_rotten
            elif branch is DecisionBranch.FRESH_KEYWORD:
                assert not first.is_rotten
            else:
                assert first.is_rotten == (score < CONFIDENCE_THRESHOLD)


class TestResolve:
    """Tests for the per-call inference state machine."""

    def test_success_path_states(self):
        states = []
        verdict = resolve(_returning("Fresh Apple", 0.92), b"img", on_state=states.append)

        assert verdict.is_rotten is False
        assert states == [
            InferenceState.IDLE,
            InferenceState.CLASSIFYING,
            InferenceState.SUCCEEDED,
            InferenceState.RESOLVED,
        ]

    def test_classifier_error_returns_fallback(self):
        """An exception from the classifier never propagates."""

        def broken(image):
            raise RuntimeError("model exploded")

        states = []
        verdict = resolve(broken, b"img", on_state=states.append, rng=random.Random(0))

        assert verdict.label == FALLBACK_LABEL
        assert verdict.score == FALLBACK_SCORE == 0.85
        assert verdict.degraded is True
        assert isinstance(verdict.is_rotten, bool)
        assert InferenceState.FAILED in states
        assert states[-1] is InferenceState.RESOLVED

    @pytest.mark.parametrize(
        "result",
        [
            None,
            ClassificationResult("", 0.9),
            ClassificationResult("   ", 0.9),
            ClassificationResult("apple", 1.5),
            ClassificationResult("apple", -0.1),
            ClassificationResult("apple", float("nan")),
            ClassificationResult("apple", "high"),
            ("apple", 0.9),
        ],
    )
    def test_invalid_result_is_failure(self, result):
        verdict = resolve(lambda image: result, b"img", rng=random.Random(0))
        assert verdict.degraded is True
        assert verdict.label == FALLBACK_LABEL

    def test_fallback_uses_injected_rng(self):
        """Fallback rotten flag follows the supplied random source."""
        flags = {fallback_verdict(random.Random(seed)).is_rotten for seed in range(50)}
        assert flags == {True, False}

        a = fallback_verdict(random.Random(11))
        b = fallback_verdict(random.Random(11))
        assert a == b

    def test_default_source_ignores_global_seed(self, monkeypatch):
        from classifier import decision

        monkeypatch.setattr(decision, "_fallback_rng", random.Random(5))
        expected = random.Random(5).random() < 0.5

        random.seed(0)
        assert fallback_verdict().is_rotten is expected

    def test_to_dict(self):
        verdict = resolve(_returning("Moldy Banana", 0.99), b"img")
        assert verdict.to_dict() == {
            "label": "Moldy Banana",
            "score": 0.99,
            "is_rotten": True,
            "degraded": False,
        }
