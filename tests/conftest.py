"""Pytest configuration and fixtures."""

import copy
import uuid
from typing import Any, Callable, Union

import pytest

from onboarding.config.settings import Settings
from onboarding.extraction.content import LoadedContent
from onboarding.llm.gateway import (
    GatewayProviderError,
    GatewayTask,
    ModelGateway,
    validate_response,
)
from onboarding.models.job import Job
from onboarding.pipeline.runner import build_runner
from onboarding.storage.blob_store import BlobStore
from onboarding.storage.database import create_db_engine, init_db
from onboarding.storage.job_store import JobStore

KICKOFF_TRANSCRIPT = """
Kickoff call - Acme Customer Service Automation

Sarah Lee: Thanks everyone for joining. The problem we are solving is slow response times during the holiday peak.
Sarah Lee: Our current cost per case is about four euros and we want to bring it down to one euro.
Tom Berg: Monthly volume is around twelve thousand tickets, mostly email.
Tom Berg: Success means an automation rate of sixty percent within six months.
Sarah Lee: I will be the business owner, and Tom leads the service desk.
Tom Berg: The digital employee should be called Ava.
""".strip()

Response = Union[dict[str, Any], Exception, Callable[[dict[str, Any]], dict[str, Any]]]


class FakeGateway(ModelGateway):
    """Gateway returning canned responses per task.

    A response may be a dict, an exception to raise, or a callable taking
    the prompt variables. Tasks without a response raise a provider error.
    """

    def __init__(self, responses: dict[GatewayTask, Response] | None = None):
        self.responses: dict[GatewayTask, Response] = dict(responses or {})
        self.calls: list[tuple[GatewayTask, dict[str, Any]]] = []

    async def invoke(self, task, variables, schema):
        self.calls.append((task, variables))
        response = self.responses.get(task)
        if response is None:
            raise GatewayProviderError(task, f"No fake response for {task.value}")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(variables)
        return validate_response(task, copy.deepcopy(response), schema)

    def calls_for(self, task: GatewayTask) -> list[dict[str, Any]]:
        return [variables for called, variables in self.calls if called == task]


def kickoff_entities() -> list[dict[str, Any]]:
    """General-stage entities whose quotes appear verbatim in the transcript."""
    return [
        {
            "category": "BUSINESS",
            "type": "BUSINESS_CASE",
            "content": "Slow response times during the holiday peak",
            "confidence": 0.95,
            "source_quote": "The problem we are solving is slow response times during the holiday peak.",
            "source_speaker": "Sarah Lee",
        },
        {
            "category": "BUSINESS",
            "type": "GOAL",
            "content": "Reduce cost per case from four euros to one euro",
            "confidence": 0.9,
            "source_quote": "we want to bring it down to one euro",
            "source_speaker": "Sarah Lee",
        },
        {
            "category": "BUSINESS",
            "type": "VOLUME_EXPECTATION",
            "content": "Around twelve thousand tickets per month, mostly email",
            "confidence": 0.85,
            "source_quote": "Monthly volume is around twelve thousand tickets, mostly email.",
            "source_speaker": "Tom Berg",
        },
        {
            "category": "BUSINESS",
            "type": "KPI_TARGET",
            "content": "Sixty percent automation rate within six months",
            "confidence": 0.8,
            "source_quote": "Success means an automation rate of sixty percent within six months.",
            "source_speaker": "Tom Berg",
        },
        {
            "category": "BUSINESS",
            "type": "STAKEHOLDER",
            "content": "Sarah Lee, business owner",
            "confidence": 0.7,
            "source_quote": "I will be the business owner",
            "source_speaker": "Sarah Lee",
        },
    ]


def kickoff_responses() -> dict[GatewayTask, Response]:
    """A run that passes every quality gate."""
    entities = kickoff_entities()
    return {
        GatewayTask.CLASSIFY: {
            "type": "KICKOFF_SESSION",
            "confidence": 0.92,
            "key_indicators": ["cost per case", "monthly volume", "success means"],
            "missing_questions": ["What's the target cost after automation?"],
        },
        GatewayTask.JUDGE_CLASSIFICATION: {
            "correct": True,
            "indicators_present": True,
            "confidence_appropriate": True,
            "score": 0.95,
            "issues": [],
        },
        GatewayTask.EXTRACT_GENERAL: {"entities": entities},
        GatewayTask.JUDGE_COVERAGE: {"coverage_score": 0.9, "missed_entities": []},
        GatewayTask.EXTRACT_SPECIALIZED: {
            "items": entities,
            "checklist": {
                "questions_asked": [
                    "What problem are we solving? Why now?",
                    "What's the current cost per case?",
                    "What's the monthly volume?",
                    "What does success look like? (KPIs)",
                ],
                "questions_missing": [],
                "coverage_score": 0.6,
            },
        },
    }


@pytest.fixture
def transcript() -> str:
    return KICKOFF_TRANSCRIPT


@pytest.fixture
def content(transcript) -> LoadedContent:
    return LoadedContent(text=transcript, filename="kickoff.txt", mime_type="text/plain")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(kickoff_responses())


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'onboarding.db'}",
        blob_dir=tmp_path / "blobs",
        progress_poll_interval=0.01,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def store(settings) -> JobStore:
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    return JobStore(engine)


@pytest.fixture
def blob_store(settings) -> BlobStore:
    return BlobStore(settings.blob_dir)


@pytest.fixture
def runner(settings, gateway):
    return build_runner(settings, gateway=gateway)


@pytest.fixture
def make_job(store, blob_store, transcript):
    """Create a persisted QUEUED job backed by a stored transcript."""

    async def _make(**fields: Any) -> Job:
        blob = await blob_store.put(transcript.encode("utf-8"), "kickoff.txt")
        job = Job(
            id=fields.pop("id", None) or str(uuid.uuid4()),
            filename="kickoff.txt",
            mime_type="text/plain",
            file_size=blob.size,
            file_path=blob.path,
            **fields,
        )
        return await store.create_job(job)

    return _make
