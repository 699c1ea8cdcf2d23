"""Exception types raised by the pipeline and the job runner."""

from typing import Optional

from onboarding.models.enums import JobStatus, PipelineStage

STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.CLASSIFICATION: "Classification",
    PipelineStage.GENERAL_EXTRACTION: "General extraction",
    PipelineStage.SPECIALIZED_EXTRACTION: "Specialized extraction",
    PipelineStage.TAB_POPULATION: "Tab population",
}


class UploadValidationError(Exception):
    """Upload rejected before a job was created."""

    pass


class PipelineError(Exception):
    """Error that aborts a pipeline run at a specific stage."""

    def __init__(self, stage: PipelineStage, message: str, retryable: bool = True):
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.retryable = retryable

    def describe(self) -> str:
        """Stage-scoped message stored on the failed job."""
        return f"{STAGE_LABELS[self.stage]} failed: {self.message}"


class ContentError(PipelineError):
    """Uploaded content could not be loaded or is empty."""

    def __init__(self, message: str, stage: PipelineStage = PipelineStage.CLASSIFICATION):
        super().__init__(stage, message, retryable=False)


class QualityGateError(PipelineError):
    """A quality judge failed a stage's output."""

    def __init__(self, stage: PipelineStage, judge: str, message: str):
        super().__init__(stage, f"Quality gate '{judge}' failed: {message}", retryable=True)
        self.judge = judge


class JobNotFoundError(Exception):
    """No job exists with the given id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class InvalidJobStateError(Exception):
    """Operation is not allowed in the job's current status."""

    def __init__(self, job_id: str, status: JobStatus, message: Optional[str] = None):
        super().__init__(message or f"Job {job_id} is {status.value}")
        self.job_id = job_id
        self.status = status


class RetryLimitExceededError(Exception):
    """Job has used all of its retry attempts."""

    def __init__(self, job_id: str, ceiling: int):
        super().__init__(
            f"Maximum retry attempts ({ceiling}) reached; re-upload the file to try again"
        )
        self.job_id = job_id
        self.ceiling = ceiling
