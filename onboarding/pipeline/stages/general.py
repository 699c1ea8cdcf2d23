"""Stage 2: General extraction of category-tagged entities."""

import time
from collections import Counter
from typing import Any

import structlog
from pydantic import BaseModel

from onboarding.llm.gateway import GatewayTask
from onboarding.models.entities import parse_candidates
from onboarding.models.enums import PipelineStage
from onboarding.models.results import GeneralExtractionResult
from onboarding.pipeline.errors import PipelineError
from onboarding.pipeline.models import StageContext, StageResult
from onboarding.pipeline.stages.base import MAX_CONTENT_CHARS, invoke_for_stage, truncate_content

logger = structlog.get_logger(__name__)


class GeneralExtractionResponse(BaseModel):
    """Raw entity list as returned by the model."""

    entities: list[Any]


async def extract_general(ctx: StageContext) -> StageResult[GeneralExtractionResult]:
    """Extract every entity the model can find in the content.

    Raises:
        PipelineError: If classification is missing or the model call fails.
    """
    if ctx.classification is None:
        raise PipelineError(
            PipelineStage.GENERAL_EXTRACTION,
            "Classification result is missing",
            retryable=True,
        )

    start = time.monotonic()
    warnings: list[str] = []

    if ctx.content.char_count > MAX_CONTENT_CHARS:
        warnings.append(f"Content truncated to {MAX_CONTENT_CHARS} characters for extraction")

    await ctx.report(10, "Extracting entities", None)

    response = await invoke_for_stage(
        PipelineStage.GENERAL_EXTRACTION,
        ctx.gateway,
        GatewayTask.EXTRACT_GENERAL,
        {
            "content_type": ctx.classification.type.value,
            "content": truncate_content(ctx.content.text),
        },
        GeneralExtractionResponse,
    )

    await ctx.report(85, "Validating entities", {"raw_entities": len(response.entities)})

    entities, parse_warnings = parse_candidates(response.entities, "general extraction")
    warnings.extend(parse_warnings)

    by_category = Counter(e.category.value if e.category else "UNCATEGORIZED" for e in entities)
    duration_ms = int((time.monotonic() - start) * 1000)

    result = GeneralExtractionResult(
        entities=entities,
        by_category=dict(by_category),
        processing_time_ms=duration_ms,
    )

    await ctx.report(100, f"Extracted {len(entities)} entities", {"entities": len(entities)})

    logger.info(
        "stage_2_complete",
        job_id=ctx.job.id,
        entities=len(entities),
        dropped=len(parse_warnings),
        by_category=dict(by_category),
        duration_ms=duration_ms,
    )

    return StageResult(output=result, warnings=warnings)
