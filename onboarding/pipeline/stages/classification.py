"""Stage 1: Classify uploaded content into a content type."""

import time
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from onboarding.llm.gateway import GatewayTask
from onboarding.models.enums import ContentType, PipelineStage
from onboarding.models.results import ClassificationResult
from onboarding.pipeline.models import StageContext, StageResult
from onboarding.pipeline.stages.base import MAX_CONTENT_CHARS, invoke_for_stage, truncate_content

logger = structlog.get_logger(__name__)


class ClassificationResponse(BaseModel):
    """Raw classification as returned by the model."""

    type: str = "UNKNOWN"
    confidence: Any = 0.0
    key_indicators: list[str] = Field(default_factory=list)
    missing_questions: list[str] = Field(default_factory=list)


def _to_content_type(tag: str) -> Optional[ContentType]:
    normalized = tag.strip().upper().replace(" ", "_").replace("-", "_")
    if normalized in ContentType.__members__:
        return ContentType[normalized]
    return None


def _clamp(value: Any) -> float:
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


async def classify_content(ctx: StageContext) -> StageResult[ClassificationResult]:
    """Classify the job's content.

    Unknown type tags fall back to UNKNOWN with a warning. Confidence is
    clamped to [0, 1] and always kept on the result, however low.

    Args:
        ctx: Stage context with loaded content and gateway.

    Returns:
        StageResult wrapping the ClassificationResult.

    Raises:
        PipelineError: If the model call fails.
    """
    start = time.monotonic()
    warnings: list[str] = []

    await ctx.report(10, "Analyzing content type", None)

    if ctx.content.char_count > MAX_CONTENT_CHARS:
        warnings.append(
            f"Content truncated to {MAX_CONTENT_CHARS} characters for classification"
        )

    response = await invoke_for_stage(
        PipelineStage.CLASSIFICATION,
        ctx.gateway,
        GatewayTask.CLASSIFY,
        {"filename": ctx.content.filename, "content": truncate_content(ctx.content.text)},
        ClassificationResponse,
    )

    content_type = _to_content_type(response.type)
    if content_type is None:
        warnings.append(f"Unknown content type '{response.type}', using UNKNOWN")
        content_type = ContentType.UNKNOWN

    result = ClassificationResult(
        type=content_type,
        confidence=_clamp(response.confidence),
        key_indicators=[i for i in response.key_indicators if i],
        missing_questions=[q for q in response.missing_questions if q],
    )

    await ctx.report(
        100,
        f"Classified as {result.type.value}",
        {"confidence": result.confidence, "type": result.type.value},
    )

    logger.info(
        "stage_1_complete",
        job_id=ctx.job.id,
        content_type=result.type.value,
        confidence=result.confidence,
        duration_ms=int((time.monotonic() - start) * 1000),
    )

    return StageResult(output=result, confidence=result.confidence, warnings=warnings)
