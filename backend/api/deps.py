"""
FastAPI dependencies.
"""

from fastapi import HTTPException, Request

from onboarding.pipeline.errors import (
    InvalidJobStateError,
    JobNotFoundError,
    RetryLimitExceededError,
    UploadValidationError,
)
from onboarding.pipeline.runner import PipelineRunner


def get_runner(request: Request) -> PipelineRunner:
    """The process-wide pipeline runner created at startup."""
    return request.app.state.runner


def to_http_error(error: Exception) -> HTTPException:
    """Map pipeline errors onto HTTP status codes."""
    if isinstance(error, JobNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, RetryLimitExceededError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (InvalidJobStateError, UploadValidationError)):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=f"{type(error).__name__}: {error}")
