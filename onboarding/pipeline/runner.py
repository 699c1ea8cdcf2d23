"""
Pipeline Runner

Entry point used by the API and the CLI. Accepts uploads, launches
background pipeline runs, exposes progress and handles retries.

Design Decisions:
- start_job returns as soon as the job is durable; the run is an asyncio task.
- Retries go through JobStore.increment_retry, whose conditional UPDATE is
  the only place the ceiling is enforced. The pre-checks here exist to
  produce the right error, not to guard the counter.
- A retry resumes no later than the failing stage, and earlier when a
  previous stage's output is missing.
"""

import asyncio
import mimetypes
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional

import structlog

from onboarding.config.settings import Settings, get_settings
from onboarding.evaluation.evaluator import QualityGate
from onboarding.evaluation.models import EvalThresholds
from onboarding.extraction.content import load_content
from onboarding.llm.client import get_llm_settings
from onboarding.llm.gateway import ModelGateway, OllamaGateway
from onboarding.llm.rate_limit import RateLimiter
from onboarding.models.entities import MaterializedItem
from onboarding.models.enums import JobStatus, PipelineStage
from onboarding.models.job import Job, ProgressEvent, RetryAck
from onboarding.pipeline.errors import (
    ContentError,
    InvalidJobStateError,
    JobNotFoundError,
    RetryLimitExceededError,
    UploadValidationError,
)
from onboarding.pipeline.orchestrator import JobOrchestrator, ProgressListener
from onboarding.pipeline.progress import ProgressPublisher, StreamEvent
from onboarding.storage.blob_store import BlobNotFoundError, BlobStore
from onboarding.storage.database import create_db_engine, init_db
from onboarding.storage.job_store import JobStore

logger = structlog.get_logger(__name__)

_EXTRA_MIME_TYPES = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".vtt": "text/vtt",
    ".txt": "text/plain",
}


def resolve_mime_type(filename: str, declared: Optional[str]) -> str:
    """Use the declared MIME type unless it is missing or generic."""
    if declared and declared != "application/octet-stream":
        return declared.split(";")[0].strip().lower()
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTRA_MIME_TYPES:
        return _EXTRA_MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def resume_stage(job: Job, requested: Optional[PipelineStage] = None) -> PipelineStage:
    """Earliest stage a retry must start from.

    A retry may rewind to an earlier stage but never starts later than the
    failing stage, so a stage whose gate failed always runs again. It also
    never skips a stage whose output was not persisted.
    """
    if job.classification_result is None:
        earliest_missing = PipelineStage.CLASSIFICATION
    elif job.raw_extraction_id is None:
        earliest_missing = PipelineStage.GENERAL_EXTRACTION
    elif job.specialized_result is None:
        earliest_missing = PipelineStage.SPECIALIZED_EXTRACTION
    else:
        earliest_missing = PipelineStage.TAB_POPULATION

    candidates = [job.current_stage, earliest_missing]
    if requested is not None:
        candidates.append(requested)
    return min(candidates, key=lambda s: s.order)


class PipelineRunner:
    """Launches and tracks pipeline runs."""

    def __init__(
        self,
        store: JobStore,
        blobs: BlobStore,
        orchestrator: JobOrchestrator,
        publisher: ProgressPublisher,
        settings: Settings,
    ):
        self.store = store
        self.blobs = blobs
        self.orchestrator = orchestrator
        self.publisher = publisher
        self.settings = settings
        self._tasks: set[asyncio.Task] = set()

    # =========================================================================
    # Start
    # =========================================================================

    def _validate_upload(self, data: bytes, filename: str, mime_type: str) -> None:
        if not filename:
            raise UploadValidationError("Filename is required")
        if not data:
            raise UploadValidationError("Uploaded file is empty")
        if len(data) > self.settings.max_upload_bytes:
            limit_mb = self.settings.max_upload_bytes / (1024 * 1024)
            raise UploadValidationError(f"File too large; maximum size is {limit_mb:.0f} MB")
        if mime_type not in self.settings.allowed_mime_types:
            raise UploadValidationError(
                f"Unsupported file type '{mime_type}'. "
                f"Allowed: {', '.join(self.settings.allowed_mime_types)}"
            )

    async def start_job(
        self,
        data: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        session_id: Optional[str] = None,
        on_progress: Optional[ProgressListener] = None,
    ) -> Job:
        """Store an upload, create its job and start processing in the background.

        Args:
            data: Raw file bytes.
            filename: Original filename.
            mime_type: Declared MIME type (guessed from the filename if missing).
            session_id: Onboarding session the items belong to.
            on_progress: Optional listener for in-process progress.

        Returns:
            The QUEUED job.

        Raises:
            UploadValidationError: If the upload is empty, too large or of an
                unsupported type.
        """
        mime_type = resolve_mime_type(filename, mime_type)
        self._validate_upload(data, filename, mime_type)

        blob = await self.blobs.put(data, filename)
        job = Job(
            id=str(uuid.uuid4()),
            session_id=session_id,
            filename=filename,
            mime_type=mime_type,
            file_size=blob.size,
            file_path=blob.path,
        )
        await self.store.create_job(job)

        self._spawn(job.id, PipelineStage.CLASSIFICATION, force=False, on_progress=on_progress)
        return job

    # =========================================================================
    # Run
    # =========================================================================

    def _spawn(
        self,
        job_id: str,
        from_stage: PipelineStage,
        force: bool,
        on_progress: Optional[ProgressListener] = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(self.run_job(job_id, from_stage, force, on_progress))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_job(
        self,
        job_id: str,
        from_stage: PipelineStage = PipelineStage.CLASSIFICATION,
        force: bool = False,
        on_progress: Optional[ProgressListener] = None,
    ) -> Optional[Job]:
        """Load the job's source file and run the orchestrator to completion.

        Returns:
            The terminal job, or None if the job disappeared while running.
        """
        try:
            job = await self.store.require_job(job_id)

            try:
                data = await self.blobs.get(job.file_path)
            except BlobNotFoundError as e:
                logger.error("source_blob_missing", job_id=job_id, path=job.file_path)
                await self.store.mark_failed(job_id, from_stage, f"Failed to load source file: {e}")
                return await self.store.require_job(job_id)

            try:
                content = await asyncio.to_thread(load_content, data, job.filename, job.mime_type)
            except ContentError as e:
                logger.error("content_load_failed", job_id=job_id, error=e.message)
                await self.store.mark_failed(job_id, e.stage, e.describe())
                return await self.store.require_job(job_id)

            return await self.orchestrator.start(job_id, content, from_stage, force, on_progress)

        except JobNotFoundError:
            logger.warning("job_vanished_during_run", job_id=job_id)
            return None

    async def wait_idle(self) -> None:
        """Wait for all background runs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel background runs (application shutdown)."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Progress
    # =========================================================================

    async def get_progress(self, job_id: str) -> ProgressEvent:
        return await self.publisher.snapshot(job_id)

    def subscribe(self, job_id: str) -> AsyncIterator[StreamEvent]:
        return self.publisher.subscribe(job_id)

    async def get_job(self, job_id: str) -> Job:
        return await self.store.require_job(job_id)

    async def list_items(self, job_id: str) -> list[MaterializedItem]:
        await self.store.require_job(job_id)
        return await self.store.list_items(job_id)

    # =========================================================================
    # Retry
    # =========================================================================

    def _refusal(self, job: Job) -> Exception:
        # The ceiling wins over status
        if job.retry_count >= self.settings.retry_ceiling:
            return RetryLimitExceededError(job.id, self.settings.retry_ceiling)
        return InvalidJobStateError(job.id, job.status, "Can only retry failed jobs")

    async def retry_job(
        self,
        job_id: str,
        from_stage: Optional[PipelineStage] = None,
        force: bool = False,
        on_progress: Optional[ProgressListener] = None,
    ) -> RetryAck:
        """Re-queue a FAILED job and start it again in the background.

        Args:
            job_id: Job to retry.
            from_stage: Stage to resume from (defaults to the failing stage).
            force: Downgrade quality-gate failures to review for this attempt.
            on_progress: Optional listener for in-process progress.

        Returns:
            Acknowledgement with the attempt number and resume stage.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidJobStateError: If the job is not FAILED.
            RetryLimitExceededError: If the retry ceiling has been reached.
        """
        ceiling = self.settings.retry_ceiling
        job = await self.store.require_job(job_id)
        if job.status != JobStatus.FAILED or job.retry_count >= ceiling:
            raise self._refusal(job)

        resume_from = resume_stage(job, from_stage)
        attempt = await self.store.increment_retry(job_id, ceiling, resume_from)
        if attempt is None:
            # Lost a race with another retry or a state change
            raise self._refusal(await self.store.require_job(job_id))

        logger.info(
            "job_retry_accepted",
            job_id=job_id,
            attempt=attempt,
            ceiling=ceiling,
            resume_from=resume_from.value,
            force=force,
        )
        self._spawn(job_id, resume_from, force=force, on_progress=on_progress)

        return RetryAck(
            job_id=job_id,
            attempt=attempt,
            ceiling=ceiling,
            retrying_from=resume_from,
        )


def build_runner(
    settings: Optional[Settings] = None,
    gateway: Optional[ModelGateway] = None,
) -> PipelineRunner:
    """Wire the runner and its dependencies from settings.

    Args:
        settings: Application settings (defaults to get_settings()).
        gateway: Model gateway override; an OllamaGateway is built otherwise.
    """
    settings = settings or get_settings()

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    store = JobStore(engine)
    blobs = BlobStore(settings.blob_dir)

    if gateway is None:
        gateway = OllamaGateway(
            RateLimiter(settings.gateway_max_concurrency, settings.gateway_min_interval_seconds),
            settings=get_llm_settings(),
            timeout_seconds=settings.gateway_timeout_seconds,
            max_attempts=settings.gateway_max_attempts,
        )

    quality_gate = QualityGate(
        gateway,
        thresholds=EvalThresholds.from_settings(settings),
        llm_judges_enabled=settings.eval_llm_judges_enabled,
    )
    orchestrator = JobOrchestrator(store, gateway, quality_gate, settings)
    publisher = ProgressPublisher(store, poll_interval=settings.progress_poll_interval)

    return PipelineRunner(store, blobs, orchestrator, publisher, settings)
