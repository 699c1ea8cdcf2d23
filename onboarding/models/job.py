"""Job model and the progress views derived from it."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from onboarding.models.enums import JobStatus, PipelineStage, StageStatus
from onboarding.models.results import (
    ClassificationResult,
    PopulationResult,
    QualityFlag,
    SpecializedExtractionResult,
)


class StageProgress(BaseModel):
    """Snapshot of where a job is inside the current stage."""

    stage: PipelineStage
    status: StageStatus = StageStatus.PENDING
    percent: int = Field(0, ge=0, le=100)
    message: str = ""
    details: Optional[dict[str, Any]] = None


class Job(BaseModel):
    """One upload's journey through the extraction pipeline."""

    id: str
    session_id: Optional[str] = None
    filename: str
    mime_type: str
    file_size: int = 0
    file_path: str

    status: JobStatus = JobStatus.QUEUED
    current_stage: PipelineStage = PipelineStage.CLASSIFICATION
    stage_progress: Optional[StageProgress] = None

    classification_result: Optional[ClassificationResult] = None
    raw_extraction_id: Optional[str] = None
    specialized_result: Optional[SpecializedExtractionResult] = None
    population_result: Optional[PopulationResult] = None
    quality_flags: list[QualityFlag] = Field(default_factory=list)

    error: Optional[str] = None
    retry_count: int = 0

    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress_percent(self) -> int:
        """Overall completion across all stages."""
        if self.status == JobStatus.COMPLETE:
            return 100
        stage_share = 100 // 4
        within = self.stage_progress.percent if self.stage_progress else 0
        return min(99, self.current_stage.order * stage_share + within * stage_share // 100)


class ProgressEvent(BaseModel):
    """Payload pushed to progress subscribers and returned by polling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: JobStatus
    stage: PipelineStage
    progress: Optional[StageProgress] = None
    percent: int = 0
    classification: Optional[ClassificationResult] = None
    population: Optional[PopulationResult] = None
    error: Optional[str] = None
    raw_extraction_id: Optional[str] = None
    retry_count: int = 0
    completed_at: Optional[datetime] = None
    final: bool = False

    @classmethod
    def from_job(cls, job: Job, final: bool = False) -> "ProgressEvent":
        event = cls(
            job_id=job.id,
            status=job.status,
            stage=job.current_stage,
            progress=job.stage_progress,
            percent=job.progress_percent,
            classification=job.classification_result,
            error=job.error,
            raw_extraction_id=job.raw_extraction_id,
            retry_count=job.retry_count,
            final=final,
        )
        if final:
            event.population = job.population_result
            event.completed_at = job.completed_at
        return event

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RetryAck(BaseModel):
    """Immediate acknowledgement of a retry request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    accepted: bool = True
    status: JobStatus = JobStatus.QUEUED
    attempt: int
    ceiling: int
    retrying_from: PipelineStage
