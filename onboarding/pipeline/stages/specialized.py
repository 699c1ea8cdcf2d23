"""Stage 3: Specialized extraction against the content type's vocabulary.

Only the general-stage entities are sent to the model, never the file.
"""

import json
import time
from typing import Any

import structlog
from pydantic import BaseModel, Field
from rapidfuzz import fuzz, process

from onboarding.llm.gateway import GatewayTask
from onboarding.models.entities import CandidateEntity, parse_candidates
from onboarding.models.enums import ContentType, ItemType, PipelineStage
from onboarding.models.results import ChecklistResult, SpecializedExtractionResult
from onboarding.pipeline.errors import PipelineError
from onboarding.pipeline.models import StageContext, StageResult
from onboarding.pipeline.stages.base import invoke_for_stage
from onboarding.pipeline.vocabulary import get_checklist

logger = structlog.get_logger(__name__)

CHECKLIST_MATCH_THRESHOLD = 80


class ChecklistResponse(BaseModel):
    questions_asked: list[str] = Field(default_factory=list)
    questions_missing: list[str] = Field(default_factory=list)
    coverage_score: Any = None


class SpecializedExtractionResponse(BaseModel):
    """Raw specialized items as returned by the model."""

    items: list[Any]
    checklist: ChecklistResponse = Field(default_factory=ChecklistResponse)


def score_checklist(checklist: list[str], asked: list[str], fallback: Any = None) -> ChecklistResult:
    """Match the model's answered questions to the checklist.

    Paraphrased questions are matched fuzzily. Coverage is the share of
    checklist questions answered; an empty checklist uses the model's own
    score when it gave one.
    """
    if not checklist:
        try:
            score = min(1.0, max(0.0, float(fallback)))
        except (TypeError, ValueError):
            score = 1.0
        return ChecklistResult(questions_asked=asked, questions_missing=[], coverage_score=score)

    answered: set[int] = set()
    for question in asked:
        match = process.extractOne(
            question,
            checklist,
            scorer=fuzz.token_set_ratio,
            score_cutoff=CHECKLIST_MATCH_THRESHOLD,
        )
        if match is not None:
            answered.add(match[2])

    return ChecklistResult(
        questions_asked=[checklist[i] for i in sorted(answered)],
        questions_missing=[q for i, q in enumerate(checklist) if i not in answered],
        coverage_score=round(len(answered) / len(checklist), 4),
    )


def _entities_json(entities: list[CandidateEntity]) -> str:
    return json.dumps(
        [
            e.model_dump(
                include={"id", "category", "type", "content", "confidence", "source_quote", "source_speaker"},
                mode="json",
                exclude_none=True,
            )
            for e in entities
        ],
        ensure_ascii=False,
        indent=2,
    )


async def extract_specialized(ctx: StageContext) -> StageResult[SpecializedExtractionResult]:
    """Refine general entities into typed items and score the checklist.

    Raises:
        PipelineError: If earlier outputs are missing or the model call fails.
    """
    if ctx.classification is None or ctx.general is None:
        raise PipelineError(
            PipelineStage.SPECIALIZED_EXTRACTION,
            "Classification or general extraction result is missing",
        )

    start = time.monotonic()
    content_type: ContentType = ctx.classification.type
    checklist = get_checklist(content_type)

    await ctx.report(10, "Refining entities", {"content_type": content_type.value})

    response = await invoke_for_stage(
        PipelineStage.SPECIALIZED_EXTRACTION,
        ctx.gateway,
        GatewayTask.EXTRACT_SPECIALIZED,
        {
            "item_types": ", ".join(t.value for t in ItemType),
            "content_type": content_type.value,
            "checklist": "\n".join(f"- {q}" for q in checklist) or "- (none)",
            "entities_json": _entities_json(ctx.general.entities),
        },
        SpecializedExtractionResponse,
    )

    await ctx.report(80, "Scoring checklist coverage", {"raw_items": len(response.items)})

    items, warnings = parse_candidates(response.items, "specialized extraction")
    checklist_result = score_checklist(
        checklist,
        response.checklist.questions_asked,
        response.checklist.coverage_score,
    )

    result = SpecializedExtractionResult(
        content_type=content_type,
        items=items,
        checklist=checklist_result,
    )

    await ctx.report(
        100,
        f"Refined {len(items)} items",
        {"items": len(items), "checklist_coverage": checklist_result.coverage_score},
    )

    logger.info(
        "stage_3_complete",
        job_id=ctx.job.id,
        items=len(items),
        dropped=len(warnings),
        checklist_coverage=checklist_result.coverage_score,
        duration_ms=int((time.monotonic() - start) * 1000),
    )

    return StageResult(output=result, confidence=checklist_result.coverage_score, warnings=warnings)
