"""Stage output models persisted on the job record.

Stage Flow:
1. Classification          → ClassificationResult
2. General Extraction      → GeneralExtractionResult (stored as a raw extraction)
3. Specialized Extraction  → SpecializedExtractionResult
4. Tab Population          → PopulationResult
"""

from pydantic import BaseModel, Field

from onboarding.models.entities import CandidateEntity
from onboarding.models.enums import ContentType, PipelineStage, Verdict


# =============================================================================
# Stage 1: Classification
# =============================================================================

class ClassificationResult(BaseModel):
    """What kind of session or document the upload is."""

    type: ContentType = Field(..., description="Detected content type")
    confidence: float = Field(..., ge=0.0, le=1.0)
    key_indicators: list[str] = Field(
        default_factory=list, description="Phrases that drove the decision"
    )
    missing_questions: list[str] = Field(
        default_factory=list,
        description="Checklist questions for this type that the content does not answer",
    )


# =============================================================================
# Stage 2: General Extraction
# =============================================================================

class GeneralExtractionResult(BaseModel):
    """Broad, category-tagged entity sweep over the full content."""

    entities: list[CandidateEntity] = Field(default_factory=list)
    by_category: dict[str, int] = Field(
        default_factory=dict, description="Entity count per category"
    )
    processing_time_ms: int = 0

    @property
    def total_entities(self) -> int:
        return len(self.entities)


# =============================================================================
# Stage 3: Specialized Extraction
# =============================================================================

class ChecklistResult(BaseModel):
    """How well the content answers the checklist for its content type."""

    questions_asked: list[str] = Field(default_factory=list)
    questions_missing: list[str] = Field(default_factory=list)
    coverage_score: float = Field(0.0, ge=0.0, le=1.0)


class SpecializedExtractionResult(BaseModel):
    """Refined, type-specific entities derived from the general sweep."""

    content_type: ContentType
    items: list[CandidateEntity] = Field(default_factory=list)
    checklist: ChecklistResult = Field(default_factory=ChecklistResult)


# =============================================================================
# Stage 4: Tab Population
# =============================================================================

class QualityFlag(BaseModel):
    """A non-passing quality verdict carried into the final result."""

    stage: PipelineStage
    verdict: Verdict
    judge: str
    message: str
    forced: bool = False


class PopulationResult(BaseModel):
    """Counts and warnings from materializing items."""

    extracted_items: int = 0
    integrations: int = Field(0, description="System integration items")
    business_rules: int = Field(0, description="Business rule and guardrail items")
    test_cases: int = Field(0, description="Happy path steps and exception cases")
    business_profile_items: int = 0
    technical_profile_items: int = 0
    warnings: list[str] = Field(default_factory=list)
    quality_flags: list[QualityFlag] = Field(default_factory=list)
