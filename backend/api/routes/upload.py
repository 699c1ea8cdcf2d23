"""
Upload Route

Accepts a recording transcript or document and starts an extraction job.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from backend.api.deps import get_runner, to_http_error
from backend.api.schemas import UploadStartResponse
from onboarding.pipeline.errors import UploadValidationError
from onboarding.pipeline.runner import PipelineRunner

router = APIRouter()


@router.post("/upload/start", response_model=UploadStartResponse, status_code=202)
async def start_upload(
    file: UploadFile = File(...),
    session_id: Optional[str] = Form(None),
    runner: PipelineRunner = Depends(get_runner),
) -> UploadStartResponse:
    """
    Upload a file and start the extraction pipeline.

    Returns immediately with the queued job; follow it through
    /upload/{job_id}/status (SSE) or /upload/{job_id}/progress.

    Returns:
        UploadStartResponse with the job id and file metadata
    """
    data = await file.read()

    try:
        job = await runner.start_job(
            data,
            file.filename or "",
            mime_type=file.content_type,
            session_id=session_id,
        )
    except UploadValidationError as e:
        raise to_http_error(e)

    return UploadStartResponse(
        job_id=job.id,
        status=job.status,
        stage=job.current_stage,
        filename=job.filename,
        mime_type=job.mime_type,
        size_bytes=job.file_size,
        session_id=job.session_id,
        created_at=job.created_at,
    )
