"""Stage 4: Map specialized items onto profile tabs.

Items are resolved against the controlled vocabulary, assigned a profile
section and a review status. Unknown types and invalid structured data are
warnings; they never fail the batch.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from onboarding.evaluation.gates import check_confidence_gate
from onboarding.models.entities import CandidateEntity, MaterializedItem, parse_structured_data
from onboarding.models.enums import ItemStatus, PipelineStage, ProfileKind
from onboarding.models.results import PopulationResult
from onboarding.pipeline.errors import PipelineError
from onboarding.pipeline.models import StageContext, StageResult
from onboarding.pipeline.vocabulary import (
    BUSINESS_RULE_TYPES,
    INTEGRATION_TYPES,
    PROFILE_SECTIONS,
    TEST_CASE_TYPES,
    resolve_item_type,
)

logger = structlog.get_logger(__name__)


@dataclass
class PopulationOutput:
    """Items ready to persist plus the summary stored on the job."""

    items: list[MaterializedItem] = field(default_factory=list)
    result: PopulationResult = field(default_factory=PopulationResult)


def item_status(confidence: float, auto_approve_threshold: float = 0.8) -> ItemStatus:
    """APPROVED at or above the auto-approve threshold, otherwise PENDING."""
    gate = check_confidence_gate(confidence, threshold=auto_approve_threshold)
    return ItemStatus.APPROVED if gate.passed else ItemStatus.PENDING


def build_items(
    candidates: list[CandidateEntity],
    job_id: str,
    session_id: Optional[str] = None,
    review_penalty: float = 0.0,
    auto_approve_threshold: float = 0.8,
) -> tuple[list[MaterializedItem], list[str]]:
    """Materialize candidates into items.

    Args:
        candidates: Specialized-stage items.
        job_id: Owning job.
        session_id: Owning onboarding session, if any.
        review_penalty: Subtracted from each confidence when an upstream
            quality judge asked for review.
        auto_approve_threshold: Confidence needed for APPROVED.

    Returns:
        Tuple of (materialized items, warnings).
    """
    items: list[MaterializedItem] = []
    warnings: list[str] = []

    for candidate in candidates:
        item_type = resolve_item_type(candidate.type)
        if item_type is None:
            warnings.append(f"Unknown item type '{candidate.type}'; skipped: {candidate.content[:60]}")
            continue

        profile, section = PROFILE_SECTIONS[item_type]

        structured, data_warning = parse_structured_data(item_type, candidate.structured_data)
        if data_warning:
            warnings.append(data_warning)

        confidence = candidate.confidence
        if review_penalty:
            confidence = max(0.0, round(confidence - review_penalty, 6))

        items.append(MaterializedItem(
            job_id=job_id,
            session_id=session_id,
            type=item_type,
            category=candidate.category,
            content=candidate.content,
            confidence=confidence,
            status=item_status(confidence, auto_approve_threshold),
            profile=profile,
            profile_section=section,
            source_quote=candidate.source_quote,
            source_speaker=candidate.source_speaker,
            source_timestamp=candidate.source_timestamp,
            structured_data=structured.model_dump(exclude_none=True) if structured else None,
        ))

    return items, warnings


def summarize(items: list[MaterializedItem], warnings: list[str]) -> PopulationResult:
    """Derive coarse counts from materialized items."""
    return PopulationResult(
        extracted_items=len(items),
        integrations=sum(1 for i in items if i.type in INTEGRATION_TYPES),
        business_rules=sum(1 for i in items if i.type in BUSINESS_RULE_TYPES),
        test_cases=sum(1 for i in items if i.type in TEST_CASE_TYPES),
        business_profile_items=sum(1 for i in items if i.profile == ProfileKind.BUSINESS),
        technical_profile_items=sum(1 for i in items if i.profile == ProfileKind.TECHNICAL),
        warnings=warnings,
    )


async def populate_tabs(ctx: StageContext) -> StageResult[PopulationOutput]:
    """Build materialized items from the specialized extraction.

    Raises:
        PipelineError: If the specialized result is missing.
    """
    if ctx.specialized is None:
        raise PipelineError(PipelineStage.TAB_POPULATION, "Specialized extraction result is missing")

    await ctx.report(10, "Mapping items to profile sections", None)

    items, warnings = build_items(
        ctx.specialized.items,
        job_id=ctx.job.id,
        session_id=ctx.job.session_id,
        review_penalty=ctx.review_penalty,
        auto_approve_threshold=ctx.auto_approve_threshold,
    )
    result = summarize(items, warnings)

    await ctx.report(
        60,
        f"Prepared {len(items)} items",
        {"items": len(items), "skipped": len(ctx.specialized.items) - len(items)},
    )

    logger.info(
        "stage_4_items_built",
        job_id=ctx.job.id,
        items=len(items),
        warnings=len(warnings),
        integrations=result.integrations,
        business_rules=result.business_rules,
        test_cases=result.test_cases,
    )

    return StageResult(output=PopulationOutput(items=items, result=result), warnings=warnings)
