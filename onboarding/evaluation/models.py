"""Models for judge verdicts and stage evaluations."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from onboarding.config.settings import Settings
from onboarding.models.enums import PipelineStage, Verdict


class EvalThresholds(BaseModel):
    """Pass thresholds and fail floors for each quality metric.

    A metric at or past its threshold passes; between threshold and floor it
    needs review; past the floor it fails.
    """

    classification_confidence: float = 0.70
    classification_confidence_floor: float = 0.40
    hallucination_rate: float = 0.03
    hallucination_rate_ceiling: float = 0.15
    coverage_score: float = 0.75
    coverage_score_floor: float = 0.60
    stage_alignment: float = 0.80
    stage_alignment_floor: float = 0.60
    checklist_coverage: float = 0.50

    @classmethod
    def from_settings(cls, settings: Settings) -> "EvalThresholds":
        return cls(
            classification_confidence=settings.eval_classification_confidence,
            classification_confidence_floor=settings.eval_classification_confidence_floor,
            hallucination_rate=settings.eval_hallucination_rate,
            hallucination_rate_ceiling=settings.eval_hallucination_rate_ceiling,
            coverage_score=settings.eval_coverage_score,
            coverage_score_floor=settings.eval_coverage_score_floor,
            stage_alignment=settings.eval_stage_alignment,
            stage_alignment_floor=settings.eval_stage_alignment_floor,
            checklist_coverage=settings.eval_checklist_coverage,
        )


class JudgeResult(BaseModel):
    """Verdict from a single judge."""

    judge: str
    verdict: Verdict
    score: float = Field(..., ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    latency_ms: int = 0
    errored: bool = Field(False, description="Judge could not run; verdict defaults to review")


class EvalResult(BaseModel):
    """Aggregate evaluation of one stage's output."""

    stage: PipelineStage
    verdict: Verdict
    overall_score: float = Field(..., ge=0.0, le=1.0)
    verdicts: list[JudgeResult] = Field(default_factory=list)
    critical_issues: list[str] = Field(default_factory=list)
    latency_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.verdict != Verdict.FAIL

    def deciding_judge(self) -> Optional[JudgeResult]:
        """The first judge whose verdict equals the stage verdict, if not pass."""
        if self.verdict == Verdict.PASS:
            return None
        for result in self.verdicts:
            if result.verdict == self.verdict:
                return result
        return None

    def summary(self) -> str:
        judge = self.deciding_judge()
        if judge is None:
            return f"score {self.overall_score:.2f}"
        issue = judge.issues[0] if judge.issues else f"score {judge.score:.2f}"
        return issue


class ConfidenceGateResult(BaseModel):
    """Outcome of the synchronous confidence gate."""

    passed: bool
    confidence: float
    threshold: float
    recommendation: str
    auto_approve: bool = False


class QuickEvalResult(BaseModel):
    """Outcome of the cheap pre-check run before LLM judges."""

    passed: bool
    score: float
    issues: list[str] = Field(default_factory=list)


class PipelineEvalResult(BaseModel):
    """Evaluation across classification, extraction and specialized stages."""

    job_id: str
    overall_passed: bool
    overall_score: float
    stages: dict[str, EvalResult]
    recommendations: list[str] = Field(default_factory=list)
    requires_human_review: bool = False
