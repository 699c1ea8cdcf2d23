"""Unit tests for the quality judges."""

import pytest

from conftest import FakeGateway
from onboarding.evaluation.judges import (
    judge_checklist,
    judge_classification,
    judge_confidence,
    judge_consistency,
    judge_coverage,
    judge_hallucination,
    run_judge,
)
from onboarding.evaluation.models import EvalThresholds
from onboarding.llm.gateway import GatewayTask
from onboarding.models.entities import CandidateEntity
from onboarding.models.enums import ContentType, EntityCategory, Verdict
from onboarding.models.results import ClassificationResult


@pytest.fixture
def thresholds() -> EvalThresholds:
    return EvalThresholds()


def entity(content: str, quote: str | None = None, speaker: str | None = None,
           item_type: str = "GOAL", category: EntityCategory = EntityCategory.BUSINESS) -> CandidateEntity:
    return CandidateEntity(
        category=category,
        type=item_type,
        content=content,
        source_quote=quote,
        source_speaker=speaker,
    )


class TestHallucinationJudge:
    """Tests for quote and speaker verification."""

    def test_verbatim_quotes_pass(self, transcript, thresholds):
        entities = [
            entity("Volume", "Monthly volume is around twelve thousand tickets", "Tom Berg"),
            entity("Cost", "we want to bring it down to one euro", "Sarah Lee"),
        ]
        result = judge_hallucination(transcript, entities, thresholds)
        assert result.verdict == Verdict.PASS
        assert result.details["checked"] == 2
        assert result.details["hallucinated_count"] == 0

    def test_whitespace_and_case_differences_are_tolerated(self, transcript, thresholds):
        entities = [entity("Volume", "monthly   VOLUME is around twelve\nthousand tickets")]
        result = judge_hallucination(transcript, entities, thresholds)
        assert result.verdict == Verdict.PASS

    def test_single_hallucination_is_review_not_fail(self, transcript, thresholds):
        entities = [
            entity("Volume", "Monthly volume is around twelve thousand tickets"),
            entity("Made up", "We will integrate with the mainframe billing platform next year"),
        ]
        result = judge_hallucination(transcript, entities, thresholds)
        assert result.details["hallucination_rate"] == pytest.approx(0.5)
        assert result.verdict == Verdict.REVIEW

    def test_several_hallucinations_fail(self, transcript, thresholds):
        entities = [
            entity("Volume", "Monthly volume is around twelve thousand tickets"),
            entity("Made up", "We will integrate with the mainframe billing platform next year"),
            entity("Also made up", "Refunds above five hundred dollars need director approval"),
        ]
        result = judge_hallucination(transcript, entities, thresholds)
        assert result.verdict == Verdict.FAIL
        assert result.details["hallucinated_count"] == 2

    def test_unknown_speaker_is_flagged(self, transcript, thresholds):
        entities = [entity("Volume", "Monthly volume is around twelve thousand tickets", "Priya Raman")]
        result = judge_hallucination(transcript, entities, thresholds)
        assert result.details["hallucinated_count"] == 1
        assert "speaker" in result.issues[1]

    def test_entities_without_quotes_are_not_checked(self, transcript, thresholds):
        result = judge_hallucination(transcript, [entity("No quote")], thresholds)
        assert result.details["checked"] == 0
        assert result.verdict == Verdict.PASS


class TestConsistencyJudge:
    """Tests for general-to-specialized traceability."""

    def test_identical_items_are_aligned(self, thresholds):
        general = [entity("Cut cost per case to one euro"), entity("Twelve thousand tickets", item_type="VOLUME")]
        result = judge_consistency(general, general, thresholds)
        assert result.verdict == Verdict.PASS
        assert result.details["stage_alignment"] == 1.0
        assert result.details["orphaned_categories"] == []

    def test_type_match_traces_reworded_item(self, thresholds):
        general = [entity("Reduce handling cost", item_type="GOAL")]
        specialized = [entity("Lower the average expense of each case", item_type="OBJECTIVE")]
        result = judge_consistency(general, specialized, thresholds)
        assert result.details["stage_alignment"] == 1.0

    def test_untraceable_items_fail(self, thresholds):
        general = [entity("Cut cost per case to one euro")]
        specialized = [
            entity("Cut cost per case to one euro"),
            entity("Integrate with SAP", item_type="SYSTEM_INTEGRATION"),
            entity("Encrypt data at rest", item_type="SECURITY_REQUIREMENT"),
        ]
        result = judge_consistency(general, specialized, thresholds)
        assert result.verdict == Verdict.FAIL
        assert len(result.details["orphaned_items"]) == 2

    def test_orphaned_categories_are_reported(self, thresholds):
        general = [
            entity("Cut cost per case to one euro"),
            entity("Email channel", item_type="CHANNEL", category=EntityCategory.CHANNELS),
        ]
        specialized = [entity("Cut cost per case to one euro")]
        result = judge_consistency(general, specialized, thresholds)
        assert result.details["orphaned_categories"] == ["CHANNELS"]

    def test_no_items_from_no_entities_is_consistent(self, thresholds):
        result = judge_consistency([], [], thresholds)
        assert result.verdict == Verdict.PASS


class TestChecklistJudge:
    """Tests for checklist coverage."""

    def test_low_coverage_is_review_never_fail(self, thresholds):
        assert judge_checklist(0.0, thresholds).verdict == Verdict.REVIEW
        assert judge_checklist(0.49, thresholds).verdict == Verdict.REVIEW

    def test_threshold_passes(self, thresholds):
        assert judge_checklist(0.5, thresholds).verdict == Verdict.PASS


class TestConfidenceJudge:
    """Tests for the classification confidence band."""

    @pytest.mark.parametrize(
        "confidence, expected",
        [(0.9, Verdict.PASS), (0.7, Verdict.PASS), (0.55, Verdict.REVIEW), (0.3, Verdict.FAIL)],
    )
    def test_bands(self, thresholds, confidence, expected):
        classification = ClassificationResult(type=ContentType.KICKOFF_SESSION, confidence=confidence)
        assert judge_confidence(classification, thresholds).verdict == expected


class TestModelJudges:
    """Tests for judges that call the model gateway."""

    async def test_incorrect_classification_fails(self, transcript):
        gateway = FakeGateway({
            GatewayTask.JUDGE_CLASSIFICATION: {
                "correct": False,
                "suggested_type": "TECHNICAL_SESSION",
                "score": 0.2,
                "issues": ["Discusses integrations"],
            },
        })
        classification = ClassificationResult(type=ContentType.KICKOFF_SESSION, confidence=0.9)
        result = await judge_classification(gateway, transcript, classification)
        assert result.verdict == Verdict.FAIL
        assert "TECHNICAL_SESSION" in result.issues[0]

    async def test_missing_indicators_asks_for_review(self, transcript):
        gateway = FakeGateway({
            GatewayTask.JUDGE_CLASSIFICATION: {
                "correct": True,
                "indicators_present": False,
                "score": 0.7,
            },
        })
        classification = ClassificationResult(type=ContentType.KICKOFF_SESSION, confidence=0.9)
        result = await judge_classification(gateway, transcript, classification)
        assert result.verdict == Verdict.REVIEW

    async def test_coverage_bands(self, transcript, thresholds):
        gateway = FakeGateway({
            GatewayTask.JUDGE_COVERAGE: {
                "coverage_score": 0.65,
                "missed_entities": [{"type": "STAKEHOLDER", "content": "Tom leads the service desk"}],
            },
        })
        result = await judge_coverage(
            gateway, transcript, ContentType.KICKOFF_SESSION, [entity("Goal")], thresholds
        )
        assert result.verdict == Verdict.REVIEW
        assert any("Tom leads the service desk" in issue for issue in result.issues)

    async def test_errored_judge_returns_review(self, transcript):
        gateway = FakeGateway()
        classification = ClassificationResult(type=ContentType.KICKOFF_SESSION, confidence=0.9)
        result = await run_judge(
            "classification",
            lambda: judge_classification(gateway, transcript, classification),
        )
        assert result.verdict == Verdict.REVIEW
        assert result.errored
        assert result.issues[0].startswith("Judge error:")
