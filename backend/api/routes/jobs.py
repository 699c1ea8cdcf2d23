"""Job endpoints: progress, live status stream, retry and items.

GET  /upload/{job_id}/progress - Current state (polling).
GET  /upload/{job_id}/status   - Server-Sent Events until the job is terminal.
POST /upload/{job_id}/retry    - Re-queue a failed job.
GET  /upload/{job_id}/items    - Items materialized by the job.
"""

import json
from contextlib import aclosing
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from backend.api.deps import get_runner, to_http_error
from backend.api.schemas import ItemsResponse, RetryRequest
from onboarding.models.job import RetryAck
from onboarding.pipeline.errors import (
    InvalidJobStateError,
    JobNotFoundError,
    RetryLimitExceededError,
)
from onboarding.pipeline.progress import StreamError
from onboarding.pipeline.runner import PipelineRunner

router = APIRouter()


@router.get("/upload/{job_id}/progress")
async def get_progress(job_id: str, runner: PipelineRunner = Depends(get_runner)) -> dict:
    """Current progress snapshot for a job."""
    try:
        event = await runner.get_progress(job_id)
    except JobNotFoundError as e:
        raise to_http_error(e)
    return event.to_wire()


@router.get("/upload/{job_id}/status")
async def stream_status(job_id: str, runner: PipelineRunner = Depends(get_runner)):
    """Stream job progress (SSE).

    Returns Server-Sent Events:
      data: {...}          - progress event; the last one has "final": true
      event: error         - {jobId, error} when the job disappears mid-stream
    """
    try:
        await runner.get_job(job_id)
    except JobNotFoundError as e:
        raise to_http_error(e)

    async def sse_generator():
        async with aclosing(runner.subscribe(job_id)) as events:
            async for event in events:
                payload = json.dumps(event.to_wire())
                if isinstance(event, StreamError):
                    yield f"event: error\ndata: {payload}\n\n"
                else:
                    yield f"data: {payload}\n\n"

    return StreamingResponse(
        sse_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/upload/{job_id}/retry", response_model=RetryAck, status_code=202)
async def retry_job(
    job_id: str,
    request: Optional[RetryRequest] = None,
    runner: PipelineRunner = Depends(get_runner),
) -> RetryAck:
    """Retry a failed job from its failing stage (at most retry_ceiling times)."""
    request = request or RetryRequest()
    try:
        return await runner.retry_job(job_id, from_stage=request.from_stage, force=request.force)
    except (JobNotFoundError, InvalidJobStateError, RetryLimitExceededError) as e:
        raise to_http_error(e)


@router.get("/upload/{job_id}/items", response_model=ItemsResponse)
async def list_items(job_id: str, runner: PipelineRunner = Depends(get_runner)) -> ItemsResponse:
    """Items the job materialized, in creation order."""
    try:
        job = await runner.get_job(job_id)
        items = await runner.list_items(job_id)
    except JobNotFoundError as e:
        raise to_http_error(e)

    return ItemsResponse(job_id=job_id, status=job.status, items=items, total_count=len(items))
