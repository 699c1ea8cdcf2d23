"""Contracts shared by the stage executors and the orchestrator."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from onboarding.extraction.content import LoadedContent
from onboarding.llm.gateway import ModelGateway
from onboarding.models.job import Job
from onboarding.models.results import (
    ClassificationResult,
    GeneralExtractionResult,
    SpecializedExtractionResult,
)

OutputT = TypeVar("OutputT")

# (percent within stage, message, optional details)
ProgressCallback = Callable[[int, str, Optional[dict[str, Any]]], Awaitable[None]]


async def _no_progress(percent: int, message: str, details: Optional[dict[str, Any]] = None) -> None:
    return None


@dataclass
class StageResult(Generic[OutputT]):
    """What a stage hands back to the orchestrator."""

    output: OutputT
    confidence: Optional[float] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class StageContext:
    """Inputs available to a stage executor.

    Prior outputs are filled in by the orchestrator, either from this run or
    from what a previous attempt persisted.
    """

    job: Job
    content: LoadedContent
    gateway: ModelGateway
    classification: Optional[ClassificationResult] = None
    general: Optional[GeneralExtractionResult] = None
    specialized: Optional[SpecializedExtractionResult] = None
    review_penalty: float = 0.0
    auto_approve_threshold: float = 0.8
    report: ProgressCallback = _no_progress
