"""Cheap, synchronous quality checks that need no model call."""

from typing import Iterable

from onboarding.evaluation.models import (
    ConfidenceGateResult,
    JudgeResult,
    QuickEvalResult,
)
from onboarding.models.entities import CandidateEntity
from onboarding.models.enums import Verdict

AUTO_APPROVE_CONFIDENCE = 0.9
MISCLASSIFIED_CONFIDENCE = 0.4

QUICK_MIN_CONFIDENCE = 0.7
QUICK_MIN_ENTITIES = 5
QUICK_MIN_COVERAGE = 0.5
QUICK_ENTITY_SATURATION = 20


def band_at_least(value: float, threshold: float, floor: float) -> Verdict:
    """Band a metric where higher is better."""
    if value >= threshold:
        return Verdict.PASS
    if value >= floor:
        return Verdict.REVIEW
    return Verdict.FAIL


def band_at_most(value: float, threshold: float, ceiling: float) -> Verdict:
    """Band a metric where lower is better."""
    if value <= threshold:
        return Verdict.PASS
    if value <= ceiling:
        return Verdict.REVIEW
    return Verdict.FAIL


def worst_verdict(verdicts: Iterable[Verdict]) -> Verdict:
    return max(verdicts, key=lambda v: v.severity, default=Verdict.PASS)


def check_confidence_gate(confidence: float, threshold: float = 0.7) -> ConfidenceGateResult:
    """Decide what to do with a confidence value without calling a model.

    Args:
        confidence: Confidence in [0, 1].
        threshold: Minimum confidence that passes.

    Returns:
        ConfidenceGateResult with a recommendation.
    """
    if confidence >= AUTO_APPROVE_CONFIDENCE:
        return ConfidenceGateResult(
            passed=True,
            confidence=confidence,
            threshold=threshold,
            recommendation="High confidence, auto-approve",
            auto_approve=True,
        )
    if confidence >= threshold:
        return ConfidenceGateResult(
            passed=True,
            confidence=confidence,
            threshold=threshold,
            recommendation="Acceptable confidence, review optional",
        )
    if confidence >= MISCLASSIFIED_CONFIDENCE:
        return ConfidenceGateResult(
            passed=False,
            confidence=confidence,
            threshold=threshold,
            recommendation="Low confidence, needs review",
        )
    return ConfidenceGateResult(
        passed=False,
        confidence=confidence,
        threshold=threshold,
        recommendation="Very low confidence, likely misclassified; re-classify",
    )


def quick_evaluate(
    confidence: float,
    entity_count: int,
    checklist_coverage: float,
) -> QuickEvalResult:
    """Combine three raw signals into a pass/fail pre-check.

    Each failing signal contributes exactly one issue.
    """
    issues: list[str] = []

    if confidence < QUICK_MIN_CONFIDENCE:
        issues.append(f"Low classification confidence: {confidence:.0%}")
    if entity_count < QUICK_MIN_ENTITIES:
        issues.append(f"Very few entities extracted: {entity_count}")
    if checklist_coverage < QUICK_MIN_COVERAGE:
        issues.append(f"Low checklist coverage: {checklist_coverage:.0%}")

    score = (
        confidence * 0.3
        + min(entity_count / QUICK_ENTITY_SATURATION, 1.0) * 0.3
        + checklist_coverage * 0.4
    )

    return QuickEvalResult(passed=not issues, score=round(score, 4), issues=issues)


def validate_schema(entities: list[CandidateEntity]) -> JudgeResult:
    """Check that every entity carries the fields downstream stages rely on."""
    issues: list[str] = []
    for entity in entities:
        if not entity.id:
            issues.append("Entity missing id")
        if entity.category is None:
            issues.append(f"Entity {entity.id} missing category")
        if not entity.type:
            issues.append(f"Entity {entity.id} missing type")
        if not entity.content:
            issues.append(f"Entity {entity.id} missing content")

    total_checks = max(1, len(entities) * 4)
    score = 1.0 - len(issues) / total_checks
    return JudgeResult(
        judge="schema",
        verdict=Verdict.PASS if not issues else Verdict.REVIEW,
        score=max(0.0, score),
        issues=issues[:10],
        details={"entity_count": len(entities), "issue_count": len(issues)},
    )
