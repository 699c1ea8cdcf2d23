"""
Response schemas for the API.

These define the output structure for API endpoints. Field names are
camelCase on the wire, matching the progress events.

Key Design Decisions:
- Every list includes count for pagination preparation
- All IDs are strings
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from onboarding.models.entities import MaterializedItem
from onboarding.models.enums import JobStatus, PipelineStage


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Upload Response
# =============================================================================

class UploadStartResponse(_CamelModel):
    """Response after an upload was accepted and its job queued."""
    job_id: str = Field(..., description="Identifier used to track the job")
    status: JobStatus = JobStatus.QUEUED
    stage: PipelineStage = PipelineStage.CLASSIFICATION
    filename: str = Field(..., description="Original filename")
    mime_type: str
    size_bytes: int = Field(..., description="File size in bytes")
    session_id: Optional[str] = None
    created_at: datetime


# =============================================================================
# Items Response
# =============================================================================

class ItemsResponse(_CamelModel):
    """Items materialized by a job."""
    job_id: str
    status: JobStatus
    items: list[MaterializedItem]
    total_count: int
