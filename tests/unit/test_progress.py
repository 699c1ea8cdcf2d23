"""Unit tests for the progress publisher."""

import asyncio

import pytest

from onboarding.models.enums import JobStatus, PipelineStage, StageStatus
from onboarding.models.job import ProgressEvent, StageProgress
from onboarding.pipeline.errors import JobNotFoundError
from onboarding.pipeline.progress import ProgressPublisher, StreamError


@pytest.fixture
def publisher(store) -> ProgressPublisher:
    return ProgressPublisher(store, poll_interval=0.01)


async def collect(stream, limit: int = 50) -> list:
    events = []
    async for event in stream:
        events.append(event)
        if len(events) >= limit:
            break
    return events


class TestSnapshot:
    """Tests for single-shot progress."""

    async def test_snapshot_of_running_job(self, publisher, make_job):
        job = await make_job(status=JobStatus.PROCESSING)
        event = await publisher.snapshot(job.id)
        assert event.status == JobStatus.PROCESSING
        assert not event.final

    async def test_snapshot_of_missing_job(self, publisher):
        with pytest.raises(JobNotFoundError):
            await publisher.snapshot("nope")

    async def test_wire_format_is_camel_case(self, publisher, make_job):
        job = await make_job(status=JobStatus.FAILED, error="Classification failed: boom")
        wire = (await publisher.snapshot(job.id)).to_wire()
        assert wire["jobId"] == job.id
        assert wire["retryCount"] == 0
        assert wire["final"] is True
        assert wire["error"] == "Classification failed: boom"


class TestSubscribe:
    """Tests for the polling stream."""

    async def test_terminal_job_yields_exactly_one_final_event(self, publisher, make_job):
        job = await make_job(status=JobStatus.COMPLETE)
        events = await collect(publisher.subscribe(job.id))
        assert len(events) == 1
        assert events[0].final

    async def test_missing_job_raises(self, publisher):
        with pytest.raises(JobNotFoundError):
            await publisher.subscribe("nope").__anext__()

    async def test_emits_only_on_change_and_ends_with_final(self, publisher, store, make_job):
        job = await make_job(status=JobStatus.PROCESSING)

        async def advance():
            await asyncio.sleep(0.1)
            await store.update_job(
                job.id,
                current_stage=PipelineStage.GENERAL_EXTRACTION,
                stage_progress=StageProgress(
                    stage=PipelineStage.GENERAL_EXTRACTION, status=StageStatus.RUNNING, percent=40
                ),
            )
            await asyncio.sleep(0.1)
            await store.update_job(job.id, status=JobStatus.COMPLETE)

        writer = asyncio.create_task(advance())
        events = await collect(publisher.subscribe(job.id))
        await writer

        # ~20 polls happened; only state changes were emitted
        assert len(events) == 3
        assert [e.final for e in events] == [False, False, True]
        assert events[1].stage == PipelineStage.GENERAL_EXTRACTION
        assert events[-1].status == JobStatus.COMPLETE

    async def test_vanished_job_ends_with_error(self, publisher, store, make_job):
        job = await make_job(status=JobStatus.PROCESSING)
        stream = publisher.subscribe(job.id)
        first = await stream.__anext__()
        assert isinstance(first, ProgressEvent)

        await store.delete_job(job.id)
        rest = await collect(stream)

        assert len(rest) == 1
        assert isinstance(rest[0], StreamError)
        assert rest[0].error == "Job not found"
        assert rest[0].to_wire()["final"] is True

    async def test_disconnect_stops_polling(self, publisher, store, make_job, monkeypatch):
        job = await make_job(status=JobStatus.PROCESSING)
        polls = 0
        get_job = store.get_job

        async def counting_get_job(job_id):
            nonlocal polls
            polls += 1
            return await get_job(job_id)

        monkeypatch.setattr(store, "get_job", counting_get_job)

        stream = publisher.subscribe(job.id)
        await stream.__anext__()
        await stream.aclose()
        after_close = polls

        await asyncio.sleep(0.1)
        assert polls == after_close
