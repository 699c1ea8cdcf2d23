"""Quality judges.

Classification and coverage judges ask the model for a second opinion.
Hallucination and consistency judges are deterministic: they fuzzy-match
quotes, speakers and contents with rapidfuzz. Every judge returns a
JudgeResult; a judge that cannot run returns ``review`` with ``errored=True``
so infrastructure trouble never silently passes or fails a stage.
"""

import json
import re
import time
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, Field
from rapidfuzz import fuzz, process

from onboarding.evaluation.gates import band_at_least, band_at_most
from onboarding.evaluation.models import EvalThresholds, JudgeResult
from onboarding.llm.gateway import GatewayTask, ModelGateway
from onboarding.models.entities import CandidateEntity
from onboarding.models.enums import ContentType, Verdict
from onboarding.models.results import ClassificationResult
from onboarding.pipeline.vocabulary import resolve_item_type

logger = structlog.get_logger(__name__)

QUOTE_MATCH_THRESHOLD = 85
SPEAKER_MATCH_THRESHOLD = 80
TRACE_MATCH_THRESHOLD = 80
JUDGE_CONTENT_LIMIT = 30000


async def run_judge(name: str, judge: Callable[[], Awaitable[JudgeResult]]) -> JudgeResult:
    """Run a judge, converting infrastructure errors into a review verdict."""
    start = time.monotonic()
    try:
        result = await judge()
    except Exception as e:
        logger.warning("judge_errored", judge=name, error=str(e))
        return JudgeResult(
            judge=name,
            verdict=Verdict.REVIEW,
            score=0.0,
            issues=[f"Judge error: {e}"],
            errored=True,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
    result.latency_ms = int((time.monotonic() - start) * 1000)
    return result


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


# =============================================================================
# Classification judge (LLM)
# =============================================================================

class ClassificationJudgeResponse(BaseModel):
    correct: bool
    suggested_type: Optional[str] = None
    indicators_present: bool = True
    confidence_appropriate: bool = True
    score: float = Field(..., ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)


async def judge_classification(
    gateway: ModelGateway,
    content: str,
    classification: ClassificationResult,
) -> JudgeResult:
    """Ask the model whether the content type and confidence are right."""
    response = await gateway.invoke(
        GatewayTask.JUDGE_CLASSIFICATION,
        {
            "content_type": classification.type.value,
            "confidence": f"{classification.confidence:.2f}",
            "key_indicators": json.dumps(classification.key_indicators),
            "content": content[:JUDGE_CONTENT_LIMIT],
        },
        ClassificationJudgeResponse,
    )

    if not response.correct:
        verdict = Verdict.FAIL
    elif not (response.indicators_present and response.confidence_appropriate):
        verdict = Verdict.REVIEW
    else:
        verdict = Verdict.PASS

    issues = list(response.issues)
    if not response.correct and response.suggested_type:
        issues.insert(0, f"Content looks like {response.suggested_type}, not {classification.type.value}")

    return JudgeResult(
        judge="classification",
        verdict=verdict,
        score=response.score,
        issues=issues,
        details={
            "correct": response.correct,
            "suggested_type": response.suggested_type,
            "indicators_present": response.indicators_present,
            "confidence_appropriate": response.confidence_appropriate,
        },
    )


def judge_confidence(classification: ClassificationResult, thresholds: EvalThresholds) -> JudgeResult:
    """Band the classifier's own confidence."""
    verdict = band_at_least(
        classification.confidence,
        thresholds.classification_confidence,
        thresholds.classification_confidence_floor,
    )
    issues = []
    if verdict != Verdict.PASS:
        issues.append(f"Classification confidence {classification.confidence:.2f} below {thresholds.classification_confidence:.2f}")
    return JudgeResult(
        judge="confidence",
        verdict=verdict,
        score=classification.confidence,
        issues=issues,
        details={"content_type": classification.type.value},
    )


# =============================================================================
# Hallucination judge (deterministic)
# =============================================================================

def _quote_found(quote: str, normalized_content: str) -> bool:
    normalized_quote = _normalize(quote)
    if not normalized_quote:
        return True
    if normalized_quote in normalized_content:
        return True
    return fuzz.partial_ratio(normalized_quote, normalized_content) >= QUOTE_MATCH_THRESHOLD


def _speaker_plausible(speaker: str, normalized_content: str) -> bool:
    normalized_speaker = _normalize(speaker)
    if not normalized_speaker or normalized_speaker in {"unknown", "null", "none"}:
        return True
    if normalized_speaker in normalized_content:
        return True
    return fuzz.partial_ratio(normalized_speaker, normalized_content) >= SPEAKER_MATCH_THRESHOLD


def judge_hallucination(
    content: str,
    entities: list[CandidateEntity],
    thresholds: EvalThresholds,
) -> JudgeResult:
    """Verify source quotes and speakers against the source content.

    Entities without a source quote are not checked.
    """
    normalized_content = _normalize(content)
    checked = 0
    hallucinated: list[dict] = []

    for entity in entities:
        if not entity.source_quote:
            continue
        checked += 1
        problems = []
        if not _quote_found(entity.source_quote, normalized_content):
            problems.append("quote not found in source")
        if entity.source_speaker and not _speaker_plausible(entity.source_speaker, normalized_content):
            problems.append(f"speaker '{entity.source_speaker}' not found in source")
        if problems:
            hallucinated.append({"entity_id": entity.id, "type": entity.type, "problems": problems})

    rate = len(hallucinated) / checked if checked else 0.0
    verdict = band_at_most(rate, thresholds.hallucination_rate, thresholds.hallucination_rate_ceiling)
    # A single unverifiable quote in a small batch is a review, not a failure.
    if verdict == Verdict.FAIL and len(hallucinated) <= 1:
        verdict = Verdict.REVIEW

    issues = [
        f"{h['type']} {h['entity_id']}: {'; '.join(h['problems'])}" for h in hallucinated[:10]
    ]
    if hallucinated:
        issues.insert(0, f"{len(hallucinated)} hallucinated entities detected ({rate:.0%} of {checked} checked)")

    return JudgeResult(
        judge="hallucination",
        verdict=verdict,
        score=round(1.0 - rate, 4),
        issues=issues,
        details={
            "checked": checked,
            "hallucinated_count": len(hallucinated),
            "hallucination_rate": round(rate, 4),
            "hallucinated": hallucinated,
        },
    )


# =============================================================================
# Coverage judge (LLM)
# =============================================================================

class MissedEntity(BaseModel):
    type: Optional[str] = None
    content: str


class CoverageJudgeResponse(BaseModel):
    coverage_score: float = Field(..., ge=0.0, le=1.0)
    missed_entities: list[MissedEntity] = Field(default_factory=list)


def _entities_for_prompt(entities: list[CandidateEntity]) -> str:
    return json.dumps(
        [{"type": e.type, "content": e.content} for e in entities],
        ensure_ascii=False,
    )


async def judge_coverage(
    gateway: ModelGateway,
    content: str,
    content_type: ContentType,
    entities: list[CandidateEntity],
    thresholds: EvalThresholds,
) -> JudgeResult:
    """Ask the model what share of extractable facts was captured."""
    response = await gateway.invoke(
        GatewayTask.JUDGE_COVERAGE,
        {
            "content_type": content_type.value,
            "content": content[:JUDGE_CONTENT_LIMIT],
            "entities_json": _entities_for_prompt(entities),
        },
        CoverageJudgeResponse,
    )

    verdict = band_at_least(response.coverage_score, thresholds.coverage_score, thresholds.coverage_score_floor)
    issues = []
    if verdict != Verdict.PASS:
        issues.append(f"Low coverage: {response.coverage_score:.2f} below {thresholds.coverage_score:.2f}")
    issues.extend(f"Missed {m.type or 'entity'}: {m.content}" for m in response.missed_entities[:10])

    return JudgeResult(
        judge="coverage",
        verdict=verdict,
        score=response.coverage_score,
        issues=issues,
        details={
            "coverage_score": response.coverage_score,
            "missed_entities": [m.model_dump() for m in response.missed_entities],
        },
    )


def judge_expected_coverage(
    coverage: float,
    missing: list[str],
    thresholds: EvalThresholds,
) -> JudgeResult:
    """Coverage from expected item types, used when model judges are disabled."""
    verdict = band_at_least(coverage, thresholds.coverage_score, thresholds.coverage_score_floor)
    issues = [f"No {name} entities extracted" for name in missing]
    return JudgeResult(
        judge="coverage",
        verdict=verdict,
        score=round(coverage, 4),
        issues=issues,
        details={"coverage_score": coverage, "missing_types": missing, "method": "expected_types"},
    )


# =============================================================================
# Consistency judge (deterministic)
# =============================================================================

def judge_consistency(
    general_entities: list[CandidateEntity],
    specialized_items: list[CandidateEntity],
    thresholds: EvalThresholds,
) -> JudgeResult:
    """Check specialized items trace back to general entities.

    An item is traced when a general entity shares its resolved type or
    closely matches its content. Stage alignment is traced / total.
    """
    if not specialized_items:
        alignment = 1.0 if not general_entities else 0.0
        issues = [] if not general_entities else ["No specialized items derived from general entities"]
        return JudgeResult(
            judge="consistency",
            verdict=band_at_least(alignment, thresholds.stage_alignment, thresholds.stage_alignment_floor),
            score=alignment,
            issues=issues,
            details={"stage_alignment": alignment, "orphaned_items": [], "orphaned_categories": []},
        )

    general_contents = [_normalize(e.content) for e in general_entities]
    types_by_index = [resolve_item_type(e.type) for e in general_entities]

    matched_general: set[int] = set()
    orphaned_items: list[str] = []

    for item in specialized_items:
        item_type = resolve_item_type(item.type)
        match_index: Optional[int] = None

        found = process.extractOne(
            _normalize(item.content),
            general_contents,
            scorer=fuzz.token_set_ratio,
            score_cutoff=TRACE_MATCH_THRESHOLD,
        )
        if found is not None:
            match_index = found[2]
        elif item_type is not None:
            match_index = next(
                (i for i, t in enumerate(types_by_index) if t == item_type),
                None,
            )

        if match_index is None:
            orphaned_items.append(item.content[:80])
        else:
            matched_general.add(match_index)

    traced = len(specialized_items) - len(orphaned_items)
    alignment = traced / len(specialized_items)

    general_categories = {e.category.value for e in general_entities if e.category}
    matched_categories = {
        general_entities[i].category.value for i in matched_general if general_entities[i].category
    }
    orphaned_categories = sorted(general_categories - matched_categories)

    verdict = band_at_least(alignment, thresholds.stage_alignment, thresholds.stage_alignment_floor)
    issues = []
    if verdict != Verdict.PASS:
        issues.append(f"Stage alignment {alignment:.2f} below {thresholds.stage_alignment:.2f}")
    issues.extend(f"Untraceable item: {content}" for content in orphaned_items[:5])
    if orphaned_categories:
        issues.append(f"Categories with no specialized items: {', '.join(orphaned_categories)}")

    return JudgeResult(
        judge="consistency",
        verdict=verdict,
        score=round(alignment, 4),
        issues=issues,
        details={
            "stage_alignment": round(alignment, 4),
            "orphaned_items": orphaned_items,
            "orphaned_categories": orphaned_categories,
        },
    )


def judge_checklist(checklist_coverage: float, thresholds: EvalThresholds) -> JudgeResult:
    """Checklist coverage never fails a run; low coverage asks for review."""
    passed = checklist_coverage >= thresholds.checklist_coverage
    return JudgeResult(
        judge="checklist",
        verdict=Verdict.PASS if passed else Verdict.REVIEW,
        score=checklist_coverage,
        issues=[] if passed else [f"Low checklist coverage: {checklist_coverage:.0%}"],
        details={"checklist_coverage": checklist_coverage},
    )
