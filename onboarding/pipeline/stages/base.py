"""Helpers shared by stage executors."""

from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from onboarding.llm.gateway import (
    GatewayError,
    GatewayMalformedResponseError,
    GatewayTask,
    GatewayTimeoutError,
    ModelGateway,
)
from onboarding.models.enums import PipelineStage
from onboarding.pipeline.errors import PipelineError

logger = structlog.get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Upper bound on characters sent to the model in one call.
MAX_CONTENT_CHARS = 120_000


async def invoke_for_stage(
    stage: PipelineStage,
    gateway: ModelGateway,
    task: GatewayTask,
    variables: dict[str, Any],
    schema: type[SchemaT],
) -> SchemaT:
    """Invoke the gateway, mapping gateway errors to a stage failure.

    Raises:
        PipelineError: Tagged with the stage and the kind of gateway failure.
    """
    try:
        return await gateway.invoke(task, variables, schema)
    except GatewayTimeoutError as e:
        logger.error("gateway_timeout", stage=stage.value, task=task.value, error=str(e))
        raise PipelineError(stage, f"Model call timed out: {e}") from e
    except GatewayMalformedResponseError as e:
        logger.error("gateway_malformed_response", stage=stage.value, task=task.value, error=str(e))
        raise PipelineError(stage, f"Malformed model response: {e}") from e
    except GatewayError as e:
        logger.error("gateway_provider_error", stage=stage.value, task=task.value, error=str(e))
        raise PipelineError(stage, f"Model provider error: {e}") from e


def truncate_content(text: str) -> str:
    if len(text) <= MAX_CONTENT_CHARS:
        return text
    return text[:MAX_CONTENT_CHARS]
