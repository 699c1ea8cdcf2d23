"""Unit tests for the synchronous quality gates."""

import pytest

from onboarding.evaluation.gates import (
    band_at_least,
    band_at_most,
    check_confidence_gate,
    quick_evaluate,
    validate_schema,
    worst_verdict,
)
from onboarding.models.entities import CandidateEntity
from onboarding.models.enums import EntityCategory, Verdict


class TestConfidenceGate:
    """Tests for check_confidence_gate bands."""

    def test_high_confidence_auto_approves(self):
        result = check_confidence_gate(0.95)
        assert result.passed
        assert result.auto_approve
        assert result.recommendation == "High confidence, auto-approve"

    def test_acceptable_confidence(self):
        result = check_confidence_gate(0.75)
        assert result.passed
        assert not result.auto_approve
        assert "review optional" in result.recommendation

    def test_threshold_is_inclusive(self):
        assert check_confidence_gate(0.7).passed
        assert not check_confidence_gate(0.6999).passed

    def test_low_confidence_needs_review(self):
        result = check_confidence_gate(0.5)
        assert not result.passed
        assert result.recommendation == "Low confidence, needs review"

    def test_very_low_confidence_suggests_reclassification(self):
        result = check_confidence_gate(0.2)
        assert not result.passed
        assert "re-classify" in result.recommendation

    def test_custom_threshold(self):
        assert check_confidence_gate(0.8, threshold=0.8).passed
        assert not check_confidence_gate(0.79999, threshold=0.8).passed


class TestQuickEvaluate:
    """Tests for the quick pre-check."""

    def test_strong_signals_pass(self):
        result = quick_evaluate(0.9, 25, 0.8)
        assert result.passed
        assert result.issues == []
        assert result.score == pytest.approx(0.89)

    def test_weak_signals_each_add_one_issue(self):
        result = quick_evaluate(0.4, 2, 0.2)
        assert not result.passed
        assert len(result.issues) == 3
        assert result.score == pytest.approx(0.23)

    def test_entity_count_saturates(self):
        assert quick_evaluate(1.0, 20, 1.0).score == quick_evaluate(1.0, 200, 1.0).score

    def test_exactly_five_entities_is_enough(self):
        result = quick_evaluate(0.9, 5, 0.8)
        assert result.passed


class TestBands:
    """Tests for the pass/review/fail banding helpers."""

    def test_band_at_least(self):
        assert band_at_least(0.75, 0.75, 0.6) == Verdict.PASS
        assert band_at_least(0.6, 0.75, 0.6) == Verdict.REVIEW
        assert band_at_least(0.59, 0.75, 0.6) == Verdict.FAIL

    def test_band_at_most(self):
        assert band_at_most(0.03, 0.03, 0.15) == Verdict.PASS
        assert band_at_most(0.1, 0.03, 0.15) == Verdict.REVIEW
        assert band_at_most(0.2, 0.03, 0.15) == Verdict.FAIL

    def test_worst_verdict(self):
        assert worst_verdict([Verdict.PASS, Verdict.REVIEW]) == Verdict.REVIEW
        assert worst_verdict([Verdict.REVIEW, Verdict.FAIL, Verdict.PASS]) == Verdict.FAIL
        assert worst_verdict([]) == Verdict.PASS


class TestValidateSchema:
    """Tests for the schema judge."""

    def test_complete_entities_pass(self):
        entities = [
            CandidateEntity(category=EntityCategory.BUSINESS, type="GOAL", content="Cut costs"),
            CandidateEntity(category=EntityCategory.PROCESS, type="HAPPY_PATH_STEP", content="Open ticket"),
        ]
        result = validate_schema(entities)
        assert result.judge == "schema"
        assert result.verdict == Verdict.PASS
        assert result.score == 1.0

    def test_missing_category_asks_for_review(self):
        entities = [CandidateEntity(type="GOAL", content="Cut costs")]
        result = validate_schema(entities)
        assert result.verdict == Verdict.REVIEW
        assert result.score == pytest.approx(0.75)
