"""Quality gate: per-stage evaluation of pipeline outputs.

Each evaluate_* method runs the judges relevant to one stage and folds their
verdicts into an EvalResult. The stage verdict is the worst judge verdict;
the overall score is a weighted average of the judges that actually ran.
"""

import asyncio
import time
from typing import Optional

import structlog

from onboarding.evaluation.gates import (
    check_confidence_gate,
    quick_evaluate,
    validate_schema,
    worst_verdict,
)
from onboarding.evaluation.judges import (
    judge_checklist,
    judge_classification,
    judge_confidence,
    judge_consistency,
    judge_coverage,
    judge_expected_coverage,
    judge_hallucination,
    run_judge,
)
from onboarding.evaluation.models import (
    EvalResult,
    EvalThresholds,
    JudgeResult,
    PipelineEvalResult,
)
from onboarding.llm.gateway import ModelGateway
from onboarding.models.enums import PipelineStage, Verdict
from onboarding.models.results import (
    ClassificationResult,
    GeneralExtractionResult,
    SpecializedExtractionResult,
)
from onboarding.pipeline.vocabulary import expected_type_coverage

logger = structlog.get_logger(__name__)

JUDGE_WEIGHTS: dict[str, float] = {
    "confidence": 1.0,
    "classification": 1.0,
    "schema": 0.5,
    "hallucination": 2.0,
    "quick_check": 1.0,
    "coverage": 1.5,
    "consistency": 1.5,
    "checklist": 0.5,
}

STAGE_WEIGHTS: dict[PipelineStage, float] = {
    PipelineStage.CLASSIFICATION: 0.2,
    PipelineStage.GENERAL_EXTRACTION: 0.5,
    PipelineStage.SPECIALIZED_EXTRACTION: 0.3,
}


def aggregate(stage: PipelineStage, verdicts: list[JudgeResult], start: float) -> EvalResult:
    """Fold judge results into a stage-level EvalResult."""
    scored = [v for v in verdicts if not v.errored]
    total_weight = sum(JUDGE_WEIGHTS.get(v.judge, 1.0) for v in scored)
    overall = (
        sum(v.score * JUDGE_WEIGHTS.get(v.judge, 1.0) for v in scored) / total_weight
        if total_weight
        else 0.0
    )
    verdict = worst_verdict(v.verdict for v in verdicts)
    critical = [issue for v in verdicts if v.verdict == Verdict.FAIL for issue in v.issues[:3]]

    return EvalResult(
        stage=stage,
        verdict=verdict,
        overall_score=round(min(1.0, max(0.0, overall)), 4),
        verdicts=verdicts,
        critical_issues=critical,
        latency_ms=int((time.monotonic() - start) * 1000),
    )


class QualityGate:
    """Runs judges for each gated stage."""

    def __init__(
        self,
        gateway: Optional[ModelGateway],
        thresholds: Optional[EvalThresholds] = None,
        llm_judges_enabled: bool = True,
    ):
        self.gateway = gateway
        self.thresholds = thresholds or EvalThresholds()
        self.llm_judges_enabled = llm_judges_enabled and gateway is not None

    async def evaluate_classification(
        self,
        content: str,
        classification: ClassificationResult,
    ) -> EvalResult:
        """Stage 1: confidence band plus the classification judge."""
        start = time.monotonic()
        verdicts = [judge_confidence(classification, self.thresholds)]

        gate = check_confidence_gate(classification.confidence, self.thresholds.classification_confidence)
        if not gate.passed:
            verdicts[0].issues.append(gate.recommendation)

        if self.llm_judges_enabled:
            verdicts.append(await run_judge(
                "classification",
                lambda: judge_classification(self.gateway, content, classification),
            ))

        result = aggregate(PipelineStage.CLASSIFICATION, verdicts, start)
        logger.info(
            "eval_classification_complete",
            verdict=result.verdict.value,
            score=result.overall_score,
        )
        return result

    async def evaluate_extraction(
        self,
        content: str,
        classification: ClassificationResult,
        general: GeneralExtractionResult,
    ) -> EvalResult:
        """Stage 2: schema, hallucination and coverage.

        A failing quick pre-check replaces the model coverage judge with a
        review verdict.
        """
        start = time.monotonic()
        verdicts = [
            validate_schema(general.entities),
            judge_hallucination(content, general.entities, self.thresholds),
        ]

        expected_coverage, missing = expected_type_coverage(
            classification.type, [e.type for e in general.entities]
        )
        quick = quick_evaluate(classification.confidence, general.total_entities, expected_coverage)

        if not quick.passed:
            verdicts.append(JudgeResult(
                judge="quick_check",
                verdict=Verdict.REVIEW,
                score=quick.score,
                issues=quick.issues,
                details={"expected_type_coverage": expected_coverage},
            ))
        elif self.llm_judges_enabled:
            verdicts.append(await run_judge(
                "coverage",
                lambda: judge_coverage(
                    self.gateway, content, classification.type, general.entities, self.thresholds
                ),
            ))
        else:
            verdicts.append(judge_expected_coverage(
                expected_coverage, [t.value for t in missing], self.thresholds
            ))

        result = aggregate(PipelineStage.GENERAL_EXTRACTION, verdicts, start)
        logger.info(
            "eval_extraction_complete",
            verdict=result.verdict.value,
            score=result.overall_score,
            quick_check_passed=quick.passed,
        )
        return result

    async def evaluate_specialized(
        self,
        general: GeneralExtractionResult,
        specialized: SpecializedExtractionResult,
    ) -> EvalResult:
        """Stage 3: checklist coverage and cross-stage consistency."""
        start = time.monotonic()
        verdicts = [
            judge_checklist(specialized.checklist.coverage_score, self.thresholds),
            judge_consistency(general.entities, specialized.items, self.thresholds),
        ]

        result = aggregate(PipelineStage.SPECIALIZED_EXTRACTION, verdicts, start)
        logger.info(
            "eval_specialized_complete",
            verdict=result.verdict.value,
            score=result.overall_score,
        )
        return result

    async def evaluate_pipeline(
        self,
        job_id: str,
        content: str,
        classification: ClassificationResult,
        general: GeneralExtractionResult,
        specialized: SpecializedExtractionResult,
    ) -> PipelineEvalResult:
        """Evaluate all gated stages of a finished run for offline review."""
        classification_eval, extraction_eval, specialized_eval = await asyncio.gather(
            self.evaluate_classification(content, classification),
            self.evaluate_extraction(content, classification, general),
            self.evaluate_specialized(general, specialized),
        )

        overall = (
            classification_eval.overall_score * STAGE_WEIGHTS[PipelineStage.CLASSIFICATION]
            + extraction_eval.overall_score * STAGE_WEIGHTS[PipelineStage.GENERAL_EXTRACTION]
            + specialized_eval.overall_score * STAGE_WEIGHTS[PipelineStage.SPECIALIZED_EXTRACTION]
        )

        recommendations: list[str] = []
        if not classification_eval.passed:
            recommendations.append("Review classification; the upload may need re-processing")
        if any(
            v.judge == "hallucination" and v.details.get("hallucinated_count")
            for v in extraction_eval.verdicts
        ):
            recommendations.append("Hallucinations detected; verify extracted entities against the source")
        if any(v.judge in ("coverage", "checklist") and v.verdict != Verdict.PASS
               for v in extraction_eval.verdicts + specialized_eval.verdicts):
            recommendations.append("Consider a follow-up session to cover missing topics")
        for verdict in specialized_eval.verdicts:
            orphaned = verdict.details.get("orphaned_categories") if verdict.judge == "consistency" else None
            if orphaned:
                recommendations.append(f"General categories missing from specialized items: {', '.join(orphaned)}")

        requires_review = (
            not classification_eval.passed
            or not extraction_eval.passed
            or any(v.verdict == Verdict.REVIEW for v in extraction_eval.verdicts)
            or overall < 0.7
        )

        return PipelineEvalResult(
            job_id=job_id,
            overall_passed=classification_eval.passed and extraction_eval.passed and specialized_eval.passed,
            overall_score=round(overall, 4),
            stages={
                "classification": classification_eval,
                "extraction": extraction_eval,
                "specialized": specialized_eval,
            },
            recommendations=recommendations,
            requires_human_review=requires_review,
        )
