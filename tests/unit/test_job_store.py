"""Unit tests for job persistence."""

import asyncio

import pytest

from conftest import kickoff_entities
from onboarding.models.entities import parse_candidates
from onboarding.models.enums import ContentType, JobStatus, PipelineStage
from onboarding.models.job import StageProgress
from onboarding.models.results import (
    ClassificationResult,
    GeneralExtractionResult,
    PopulationResult,
)
from onboarding.pipeline.errors import JobNotFoundError
from onboarding.pipeline.stages.population import build_items, summarize

DONE = StageProgress(stage=PipelineStage.TAB_POPULATION, percent=100)


class TestJobLifecycle:
    """Tests for creating and updating jobs."""

    async def test_create_and_get(self, store, make_job):
        job = await make_job(session_id="session-1")
        loaded = await store.get_job(job.id)
        assert loaded.status == JobStatus.QUEUED
        assert loaded.current_stage == PipelineStage.CLASSIFICATION
        assert loaded.session_id == "session-1"

    async def test_missing_job(self, store):
        assert await store.get_job("nope") is None
        with pytest.raises(JobNotFoundError):
            await store.update_job("nope", status=JobStatus.PROCESSING)

    async def test_unknown_fields_are_rejected(self, store, make_job):
        job = await make_job()
        with pytest.raises(ValueError):
            await store.update_job(job.id, colour="blue")

    async def test_structured_fields_round_trip(self, store, make_job):
        job = await make_job()
        classification = ClassificationResult(type=ContentType.TECHNICAL_SESSION, confidence=0.81)
        await store.update_job(
            job.id,
            classification_result=classification,
            stage_progress=StageProgress(stage=PipelineStage.CLASSIFICATION, percent=40, message="Working"),
        )
        loaded = await store.require_job(job.id)
        assert loaded.classification_result == classification
        assert loaded.stage_progress.percent == 40

    async def test_mark_failed_sets_stage_and_error_together(self, store, make_job):
        job = await make_job()
        await store.mark_failed(job.id, PipelineStage.SPECIALIZED_EXTRACTION, "Specialized extraction failed: boom")
        loaded = await store.require_job(job.id)
        assert loaded.status == JobStatus.FAILED
        assert loaded.current_stage == PipelineStage.SPECIALIZED_EXTRACTION
        assert loaded.error == "Specialized extraction failed: boom"


class TestRetryCounter:
    """The retry ceiling is enforced by a conditional update."""

    async def test_increments_up_to_ceiling(self, store, make_job):
        job = await make_job(status=JobStatus.FAILED)
        attempts = []
        for _ in range(4):
            attempts.append(await store.increment_retry(job.id, 3, PipelineStage.CLASSIFICATION))
            await store.update_job(job.id, status=JobStatus.FAILED)
        assert attempts == [1, 2, 3, None]

    async def test_only_failed_jobs_are_requeued(self, store, make_job):
        job = await make_job()
        assert await store.increment_retry(job.id, 3, PipelineStage.CLASSIFICATION) is None

    async def test_requeue_clears_error_and_sets_stage(self, store, make_job):
        job = await make_job(status=JobStatus.FAILED, error="boom")
        await store.increment_retry(job.id, 3, PipelineStage.GENERAL_EXTRACTION)
        loaded = await store.require_job(job.id)
        assert loaded.status == JobStatus.QUEUED
        assert loaded.current_stage == PipelineStage.GENERAL_EXTRACTION
        assert loaded.error is None

    async def test_concurrent_increments_respect_ceiling(self, store, make_job):
        job = await make_job(status=JobStatus.FAILED, retry_count=2)
        results = await asyncio.gather(*[
            store.increment_retry(job.id, 3, PipelineStage.CLASSIFICATION) for _ in range(5)
        ])
        assert [r for r in results if r is not None] == [3]
        assert (await store.require_job(job.id)).retry_count == 3


class TestOutputs:
    """Tests for raw extractions and materialized items."""

    async def test_raw_extraction_is_linked_to_job(self, store, make_job):
        job = await make_job()
        entities, _ = parse_candidates(kickoff_entities(), "test")
        general = GeneralExtractionResult(entities=entities, by_category={"BUSINESS": 5})
        classification = ClassificationResult(type=ContentType.KICKOFF_SESSION, confidence=0.9)

        extraction_id = await store.save_raw_extraction(job, classification, general)

        assert (await store.require_job(job.id)).raw_extraction_id == extraction_id
        assert await store.get_raw_extraction(extraction_id) == general

    async def test_complete_with_items(self, store, make_job):
        job = await make_job()
        entities, _ = parse_candidates(kickoff_entities(), "test")
        items, warnings = build_items(entities, job.id)

        population = await store.complete_with_items(job.id, items, summarize(items, warnings), DONE)

        loaded = await store.require_job(job.id)
        assert loaded.status == JobStatus.COMPLETE
        assert loaded.completed_at is not None
        assert loaded.population_result == population
        stored = await store.list_items(job.id)
        assert sorted(i.content for i in stored) == sorted(i.content for i in items)

    async def test_regeneration_keeps_reviewed_items(self, store, make_job):
        job = await make_job()
        entities, _ = parse_candidates(kickoff_entities(), "test")

        first, _ = build_items(entities, job.id)
        await store.complete_with_items(job.id, first, PopulationResult(), DONE)
        await store.mark_reviewed(first[0].id)

        second, _ = build_items(entities, job.id)
        population = await store.complete_with_items(job.id, second, PopulationResult(), DONE)

        stored = await store.list_items(job.id)
        assert len(stored) == len(entities)
        assert first[0].id in {i.id for i in stored}
        assert population.warnings == ["1 items already reviewed; kept the reviewed versions"]

    async def test_delete_job_removes_everything(self, store, make_job):
        job = await make_job()
        entities, _ = parse_candidates(kickoff_entities(), "test")
        items, _ = build_items(entities, job.id)
        await store.complete_with_items(job.id, items, PopulationResult(), DONE)

        assert await store.delete_job(job.id)
        assert await store.get_job(job.id) is None
        assert await store.list_items(job.id) == []
