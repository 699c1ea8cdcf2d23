"""
Job Store

Durable job state, raw extractions and materialized items.

Design Decisions:
- Every job mutation is a single UPDATE statement, so readers never see a
  torn record (e.g. FAILED with a stale stage).
- The retry counter is bumped by a conditional UPDATE that checks the
  ceiling in the WHERE clause; concurrent retries cannot exceed it.
- Completing a job and writing its items happen in one transaction.
- Sync SQLAlchemy sessions run in worker threads via asyncio.to_thread.
"""

import asyncio
import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from onboarding.models.entities import MaterializedItem
from onboarding.models.enums import JobStatus, PipelineStage, StageStatus
from onboarding.models.job import Job, StageProgress
from onboarding.models.results import (
    ClassificationResult,
    GeneralExtractionResult,
    PopulationResult,
)
from onboarding.pipeline.errors import JobNotFoundError
from onboarding.storage.database import create_session_factory
from onboarding.storage.tables import ExtractedItemRecord, JobRecord, RawExtractionRecord

logger = structlog.get_logger(__name__)

_JOB_COLUMNS = {column.name for column in JobRecord.__table__.columns}


def _to_column(value: Any) -> Any:
    """Convert domain values into what the ORM columns store."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_to_column(v) for v in value]
    return value


def _record_to_job(record: JobRecord) -> Job:
    return Job.model_validate({name: getattr(record, name) for name in _JOB_COLUMNS})


def _record_to_item(record: ExtractedItemRecord) -> MaterializedItem:
    return MaterializedItem.model_validate({
        column.name: getattr(record, column.name)
        for column in ExtractedItemRecord.__table__.columns
    })


def _item_key(item_type: str, content: str) -> tuple[str, str]:
    return item_type, re.sub(r"\s+", " ", content).strip().lower()


class JobStore:
    """Persistence for jobs and their outputs."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions: sessionmaker = create_session_factory(engine)

    # =========================================================================
    # Jobs
    # =========================================================================

    def _create_job(self, job: Job) -> Job:
        with self._sessions() as session, session.begin():
            values = {name: _to_column(getattr(job, name)) for name in _JOB_COLUMNS}
            session.add(JobRecord(**values))
        return job

    async def create_job(self, job: Job) -> Job:
        job = await asyncio.to_thread(self._create_job, job)
        logger.info("job_created", job_id=job.id, filename=job.filename)
        return job

    def _get_job(self, job_id: str) -> Optional[Job]:
        with self._sessions() as session:
            record = session.get(JobRecord, job_id)
            return _record_to_job(record) if record else None

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await asyncio.to_thread(self._get_job, job_id)

    async def require_job(self, job_id: str) -> Job:
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _update_job(self, job_id: str, values: dict[str, Any]) -> None:
        unknown = set(values) - _JOB_COLUMNS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")
        values = {name: _to_column(value) for name, value in values.items()}
        values["updated_at"] = datetime.utcnow()
        with self._sessions() as session, session.begin():
            result = session.execute(
                update(JobRecord).where(JobRecord.id == job_id).values(**values)
            )
            if result.rowcount == 0:
                raise JobNotFoundError(job_id)

    async def update_job(self, job_id: str, **fields: Any) -> None:
        """Atomically update any subset of job fields."""
        await asyncio.to_thread(self._update_job, job_id, fields)

    async def mark_failed(
        self,
        job_id: str,
        stage: PipelineStage,
        error: str,
        progress: Optional[StageProgress] = None,
    ) -> None:
        """Set FAILED together with the failing stage and its error."""
        progress = progress or StageProgress(stage=stage, status=StageStatus.ERROR, message=error)
        await self.update_job(
            job_id,
            status=JobStatus.FAILED,
            current_stage=stage,
            error=error,
            stage_progress=progress,
        )

    def _increment_retry(self, job_id: str, ceiling: int, from_stage: PipelineStage) -> Optional[int]:
        now = datetime.utcnow()
        progress = StageProgress(stage=from_stage, message="Queued for retry")
        with self._sessions() as session, session.begin():
            result = session.execute(
                update(JobRecord)
                .where(
                    JobRecord.id == job_id,
                    JobRecord.status == JobStatus.FAILED.value,
                    JobRecord.retry_count < ceiling,
                )
                .values(
                    retry_count=JobRecord.retry_count + 1,
                    status=JobStatus.QUEUED.value,
                    current_stage=from_stage.value,
                    stage_progress=progress.model_dump(mode="json"),
                    error=None,
                    completed_at=None,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                return None
            return session.execute(
                select(JobRecord.retry_count).where(JobRecord.id == job_id)
            ).scalar_one()

    async def increment_retry(self, job_id: str, ceiling: int, from_stage: PipelineStage) -> Optional[int]:
        """Re-queue a FAILED job if it is under the retry ceiling.

        Returns:
            The new retry count, or None when the job is not FAILED or the
            ceiling has been reached.
        """
        return await asyncio.to_thread(self._increment_retry, job_id, ceiling, from_stage)

    def _delete_job(self, job_id: str) -> bool:
        with self._sessions() as session, session.begin():
            session.execute(delete(ExtractedItemRecord).where(ExtractedItemRecord.job_id == job_id))
            session.execute(delete(RawExtractionRecord).where(RawExtractionRecord.job_id == job_id))
            result = session.execute(delete(JobRecord).where(JobRecord.id == job_id))
            return result.rowcount > 0

    async def delete_job(self, job_id: str) -> bool:
        """Administrative removal of a job and everything it produced."""
        deleted = await asyncio.to_thread(self._delete_job, job_id)
        if deleted:
            logger.info("job_deleted", job_id=job_id)
        return deleted

    # =========================================================================
    # Raw extractions
    # =========================================================================

    def _save_raw_extraction(
        self,
        job: Job,
        classification: ClassificationResult,
        general: GeneralExtractionResult,
    ) -> str:
        extraction_id = str(uuid.uuid4())
        with self._sessions() as session, session.begin():
            session.add(RawExtractionRecord(
                id=extraction_id,
                job_id=job.id,
                content_type=classification.type.value,
                source_filename=job.filename,
                source_mime_type=job.mime_type,
                raw_json=general.model_dump(mode="json"),
                entity_count=general.total_entities,
                processing_time_ms=general.processing_time_ms,
            ))
            session.execute(
                update(JobRecord)
                .where(JobRecord.id == job.id)
                .values(raw_extraction_id=extraction_id, updated_at=datetime.utcnow())
            )
        return extraction_id

    async def save_raw_extraction(
        self,
        job: Job,
        classification: ClassificationResult,
        general: GeneralExtractionResult,
    ) -> str:
        """Persist the general extraction and link it to the job."""
        return await asyncio.to_thread(self._save_raw_extraction, job, classification, general)

    def _get_raw_extraction(self, extraction_id: str) -> Optional[GeneralExtractionResult]:
        with self._sessions() as session:
            record = session.get(RawExtractionRecord, extraction_id)
            if record is None:
                return None
            return GeneralExtractionResult.model_validate(record.raw_json)

    async def get_raw_extraction(self, extraction_id: str) -> Optional[GeneralExtractionResult]:
        return await asyncio.to_thread(self._get_raw_extraction, extraction_id)

    # =========================================================================
    # Materialized items
    # =========================================================================

    def _complete_with_items(
        self,
        job_id: str,
        items: list[MaterializedItem],
        population: PopulationResult,
        progress: StageProgress,
    ) -> PopulationResult:
        now = datetime.utcnow()
        with self._sessions() as session, session.begin():
            session.execute(
                delete(ExtractedItemRecord).where(
                    ExtractedItemRecord.job_id == job_id,
                    ExtractedItemRecord.reviewed_at.is_(None),
                )
            )
            reviewed = session.execute(
                select(ExtractedItemRecord.type, ExtractedItemRecord.content)
                .where(ExtractedItemRecord.job_id == job_id)
            ).all()
            reviewed_keys = {_item_key(t, c) for t, c in reviewed}

            kept = 0
            for item in items:
                if _item_key(item.type.value, item.content) in reviewed_keys:
                    continue
                values = {name: _to_column(value) for name, value in item.model_dump().items()}
                session.add(ExtractedItemRecord(**values))
                kept += 1

            skipped = len(items) - kept
            if skipped:
                population = population.model_copy(update={
                    "warnings": population.warnings
                    + [f"{skipped} items already reviewed; kept the reviewed versions"],
                })

            result = session.execute(
                update(JobRecord)
                .where(JobRecord.id == job_id)
                .values(
                    status=JobStatus.COMPLETE.value,
                    current_stage=PipelineStage.TAB_POPULATION.value,
                    population_result=population.model_dump(mode="json"),
                    stage_progress=progress.model_dump(mode="json"),
                    error=None,
                    completed_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                raise JobNotFoundError(job_id)
        return population

    async def complete_with_items(
        self,
        job_id: str,
        items: list[MaterializedItem],
        population: PopulationResult,
        progress: StageProgress,
    ) -> PopulationResult:
        """Materialize items and mark the job COMPLETE in one transaction.

        Unreviewed items from an earlier attempt are replaced; items a human
        already reviewed are kept and never duplicated.

        Returns:
            The population result as stored.
        """
        return await asyncio.to_thread(self._complete_with_items, job_id, items, population, progress)

    def _list_items(self, job_id: str) -> list[MaterializedItem]:
        with self._sessions() as session:
            records = session.execute(
                select(ExtractedItemRecord)
                .where(ExtractedItemRecord.job_id == job_id)
                .order_by(ExtractedItemRecord.created_at, ExtractedItemRecord.id)
            ).scalars().all()
            return [_record_to_item(r) for r in records]

    async def list_items(self, job_id: str) -> list[MaterializedItem]:
        return await asyncio.to_thread(self._list_items, job_id)

    def _mark_reviewed(self, item_id: str) -> None:
        with self._sessions() as session, session.begin():
            session.execute(
                update(ExtractedItemRecord)
                .where(ExtractedItemRecord.id == item_id)
                .values(reviewed_at=datetime.utcnow())
            )

    async def mark_reviewed(self, item_id: str) -> None:
        """Record that a human reviewed an item (review UI hook)."""
        await asyncio.to_thread(self._mark_reviewed, item_id)
