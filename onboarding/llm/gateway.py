"""Model gateway: the single seam between the pipeline and the LLM provider.

Every call is bounded by a timeout, paced by an injected RateLimiter and
returns a dict validated against the caller's response schema. Provider
failures surface as one of three distinct GatewayError subclasses.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, TypeVar

import structlog
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_ollama import OllamaLLM
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from onboarding.config import prompts
from onboarding.llm.client import LLMSettings, create_llm_client
from onboarding.llm.parsing import JSONRecoveryError, parse_json_response
from onboarding.llm.rate_limit import RateLimiter

logger = structlog.get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GatewayTask(str, Enum):
    """Prompted operations the gateway knows how to run."""

    CLASSIFY = "classify"
    EXTRACT_GENERAL = "extract_general"
    EXTRACT_SPECIALIZED = "extract_specialized"
    JUDGE_CLASSIFICATION = "judge_classification"
    JUDGE_COVERAGE = "judge_coverage"

    @property
    def is_judge(self) -> bool:
        return self in (GatewayTask.JUDGE_CLASSIFICATION, GatewayTask.JUDGE_COVERAGE)


TASK_PROMPTS: dict[GatewayTask, tuple[str, str]] = {
    GatewayTask.CLASSIFY: (
        prompts.CLASSIFICATION_SYSTEM_PROMPT,
        prompts.CLASSIFICATION_USER_PROMPT,
    ),
    GatewayTask.EXTRACT_GENERAL: (
        prompts.GENERAL_EXTRACTION_SYSTEM_PROMPT,
        prompts.GENERAL_EXTRACTION_USER_PROMPT,
    ),
    GatewayTask.EXTRACT_SPECIALIZED: (
        prompts.SPECIALIZED_EXTRACTION_SYSTEM_PROMPT,
        prompts.SPECIALIZED_EXTRACTION_USER_PROMPT,
    ),
    GatewayTask.JUDGE_CLASSIFICATION: (
        prompts.CLASSIFICATION_JUDGE_SYSTEM_PROMPT,
        prompts.CLASSIFICATION_JUDGE_USER_PROMPT,
    ),
    GatewayTask.JUDGE_COVERAGE: (
        prompts.COVERAGE_JUDGE_SYSTEM_PROMPT,
        prompts.COVERAGE_JUDGE_USER_PROMPT,
    ),
}


# =============================================================================
# Errors
# =============================================================================

class GatewayError(Exception):
    """Base class for model gateway failures."""

    def __init__(self, task: GatewayTask, message: str):
        super().__init__(message)
        self.task = task


class GatewayTimeoutError(GatewayError):
    """The provider did not answer within the configured timeout."""

    pass


class GatewayMalformedResponseError(GatewayError):
    """The provider answered but not with JSON matching the schema."""

    pass


class GatewayProviderError(GatewayError):
    """The provider call itself failed (connection, HTTP, model error)."""

    pass


# =============================================================================
# Gateway interface
# =============================================================================

class ModelGateway(ABC):
    """Structured model invocation used by stages and judges."""

    @abstractmethod
    async def invoke(
        self,
        task: GatewayTask,
        variables: dict[str, Any],
        schema: type[SchemaT],
    ) -> SchemaT:
        """Run a prompted task and return the validated response.

        Raises:
            GatewayTimeoutError: Call exceeded the timeout.
            GatewayMalformedResponseError: Response is not schema-conforming JSON.
            GatewayProviderError: Provider failure.
        """


def validate_response(task: GatewayTask, payload: dict, schema: type[SchemaT]) -> SchemaT:
    """Validate a parsed payload against a response schema."""
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise GatewayMalformedResponseError(
            task, f"Response does not match {schema.__name__}: {e.error_count()} errors"
        ) from e


class OllamaGateway(ModelGateway):
    """Gateway backed by langchain-ollama."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        settings: Optional[LLMSettings] = None,
        timeout_seconds: float = 180.0,
        max_attempts: int = 3,
        retry_wait_seconds: float = 1.0,
    ):
        self.rate_limiter = rate_limiter
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_wait_seconds = retry_wait_seconds
        self._llm: OllamaLLM = create_llm_client(settings)
        self._judge_llm: OllamaLLM = create_llm_client(settings, for_judging=True)

    def _chain(self, task: GatewayTask):
        system_prompt, user_prompt = TASK_PROMPTS[task]
        prompt = ChatPromptTemplate.from_messages([
            ("system", system_prompt),
            ("human", user_prompt),
        ])
        llm = self._judge_llm if task.is_judge else self._llm
        return prompt | llm | StrOutputParser()

    async def _invoke_once(self, task: GatewayTask, variables: dict[str, Any]) -> str:
        chain = self._chain(task)
        async with self.rate_limiter.slot():
            try:
                return await asyncio.wait_for(chain.ainvoke(variables), self.timeout_seconds)
            except asyncio.TimeoutError as e:
                raise GatewayTimeoutError(
                    task, f"{task.value} timed out after {self.timeout_seconds:.0f}s"
                ) from e
            except Exception as e:
                raise GatewayProviderError(task, f"{type(e).__name__}: {e}") from e

    async def invoke(
        self,
        task: GatewayTask,
        variables: dict[str, Any],
        schema: type[SchemaT],
    ) -> SchemaT:
        start = time.monotonic()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, min=2 * self.retry_wait_seconds, max=30),
            retry=retry_if_exception_type(GatewayError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._invoke_once(task, variables)
                try:
                    payload = parse_json_response(response)
                except JSONRecoveryError as e:
                    raise GatewayMalformedResponseError(task, str(e)) from e
                result = validate_response(task, payload, schema)

        logger.debug(
            "gateway_invoke_complete",
            task=task.value,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        return result
