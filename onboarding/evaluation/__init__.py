"""Quality gate and judges for pipeline outputs."""

from onboarding.evaluation.evaluator import QualityGate
from onboarding.evaluation.gates import check_confidence_gate, quick_evaluate, validate_schema
from onboarding.evaluation.models import (
    ConfidenceGateResult,
    EvalResult,
    EvalThresholds,
    JudgeResult,
    PipelineEvalResult,
    QuickEvalResult,
)

__all__ = [
    "ConfidenceGateResult",
    "EvalResult",
    "EvalThresholds",
    "JudgeResult",
    "PipelineEvalResult",
    "QualityGate",
    "QuickEvalResult",
    "check_confidence_gate",
    "quick_evaluate",
    "validate_schema",
]
