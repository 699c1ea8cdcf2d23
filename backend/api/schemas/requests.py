"""
Request schemas for the API.

These define the expected input structure for API endpoints.
Using Pydantic v2 for validation and serialization.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from onboarding.models.enums import PipelineStage


class RetryRequest(BaseModel):
    """Options for retrying a failed job."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"fromStage": "SPECIALIZED_EXTRACTION", "force": False}
            ]
        },
    )

    from_stage: Optional[PipelineStage] = Field(
        None, description="Stage to resume from; defaults to the failing stage"
    )
    force: bool = Field(
        default=False, description="Continue past quality-gate failures, flagging items for review"
    )
