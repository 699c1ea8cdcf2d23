"""Progress Publisher - pushes job state changes to subscribers.

The publisher never talks to the orchestrator. It polls the job store on a
fixed interval and emits an event only when the observable state changed,
so any number of subscribers can watch the same job without coordination.
A stream ends with exactly one ``final`` event once the job is terminal, or
with a StreamError if the job disappears mid-stream.
"""

import asyncio
from typing import Any, AsyncIterator, Union

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from onboarding.models.job import Job, ProgressEvent
from onboarding.pipeline.errors import JobNotFoundError
from onboarding.storage.job_store import JobStore

logger = structlog.get_logger(__name__)


class StreamError(BaseModel):
    """Terminal error event for a stream that can no longer continue."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    error: str
    final: bool = True

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


StreamEvent = Union[ProgressEvent, StreamError]


def _signature(job: Job) -> tuple:
    """Observable state; an event is emitted only when this changes."""
    progress = job.stage_progress.model_dump(mode="json") if job.stage_progress else None
    return (
        job.status,
        job.current_stage,
        job.retry_count,
        job.error,
        repr(progress),
    )


class ProgressPublisher:
    """Polls job state and yields change events."""

    def __init__(self, store: JobStore, poll_interval: float = 1.0):
        self.store = store
        self.poll_interval = poll_interval

    async def snapshot(self, job_id: str) -> ProgressEvent:
        """Current state as a single event (for polling clients).

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        job = await self.store.require_job(job_id)
        return ProgressEvent.from_job(job, final=job.is_terminal)

    async def subscribe(self, job_id: str) -> AsyncIterator[StreamEvent]:
        """Stream progress events for a job until it is terminal.

        The first event is the current state. A job that is already terminal
        produces exactly one final event. Closing the iterator (consumer
        disconnect) stops polling.

        Raises:
            JobNotFoundError: If the job does not exist when subscribing.
        """
        job = await self.store.require_job(job_id)

        if job.is_terminal:
            yield ProgressEvent.from_job(job, final=True)
            return

        logger.debug("progress_stream_opened", job_id=job_id)
        last = _signature(job)
        emitted = 1
        try:
            yield ProgressEvent.from_job(job)

            while True:
                await asyncio.sleep(self.poll_interval)

                try:
                    job = await self.store.require_job(job_id)
                except JobNotFoundError:
                    logger.warning("progress_stream_job_vanished", job_id=job_id)
                    yield StreamError(job_id=job_id, error="Job not found")
                    return

                if job.is_terminal:
                    emitted += 1
                    yield ProgressEvent.from_job(job, final=True)
                    return

                current = _signature(job)
                if current != last:
                    last = current
                    emitted += 1
                    yield ProgressEvent.from_job(job)
        finally:
            logger.debug("progress_stream_closed", job_id=job_id, events=emitted)
