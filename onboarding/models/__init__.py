"""Domain models for jobs, stage outputs and extracted items."""

from onboarding.models.entities import (
    STRUCTURED_DATA_MODELS,
    CandidateEntity,
    MaterializedItem,
    StructuredData,
    parse_candidates,
    parse_structured_data,
)
from onboarding.models.enums import (
    STAGE_ORDER,
    ContentType,
    EntityCategory,
    ItemStatus,
    ItemType,
    JobStatus,
    PipelineStage,
    ProfileKind,
    StageStatus,
    Verdict,
)
from onboarding.models.job import Job, ProgressEvent, RetryAck, StageProgress
from onboarding.models.results import (
    ChecklistResult,
    ClassificationResult,
    GeneralExtractionResult,
    PopulationResult,
    QualityFlag,
    SpecializedExtractionResult,
)

__all__ = [
    # Enums
    "STAGE_ORDER",
    "ContentType",
    "EntityCategory",
    "ItemStatus",
    "ItemType",
    "JobStatus",
    "PipelineStage",
    "ProfileKind",
    "StageStatus",
    "Verdict",
    # Entities
    "STRUCTURED_DATA_MODELS",
    "CandidateEntity",
    "MaterializedItem",
    "StructuredData",
    "parse_candidates",
    "parse_structured_data",
    # Job
    "Job",
    "ProgressEvent",
    "RetryAck",
    "StageProgress",
    # Stage outputs
    "ChecklistResult",
    "ClassificationResult",
    "GeneralExtractionResult",
    "PopulationResult",
    "QualityFlag",
    "SpecializedExtractionResult",
]
