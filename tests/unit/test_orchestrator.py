"""Unit tests for the job orchestrator."""

import pytest

from conftest import FakeGateway, kickoff_responses
from onboarding.evaluation.evaluator import QualityGate
from onboarding.evaluation.models import EvalThresholds
from onboarding.llm.gateway import GatewayTask, GatewayTimeoutError
from onboarding.models.enums import ItemStatus, JobStatus, PipelineStage, StageStatus
from onboarding.pipeline.orchestrator import JobOrchestrator


def build(store, settings, gateway) -> JobOrchestrator:
    gate = QualityGate(gateway, thresholds=EvalThresholds.from_settings(settings))
    return JobOrchestrator(store, gateway, gate, settings)


def misclassified_responses():
    responses = kickoff_responses()
    responses[GatewayTask.JUDGE_CLASSIFICATION] = {
        "correct": False,
        "suggested_type": "TECHNICAL_SESSION",
        "score": 0.1,
        "issues": [],
    }
    return responses


class TestHappyPath:
    """Tests for a run that passes every gate."""

    async def test_runs_all_stages_to_complete(self, store, settings, gateway, make_job, content):
        job = await make_job()

        result = await build(store, settings, gateway).start(job.id, content)

        assert result.status == JobStatus.COMPLETE
        assert result.current_stage == PipelineStage.TAB_POPULATION
        assert result.error is None
        assert result.classification_result.type.value == "KICKOFF_SESSION"
        assert result.raw_extraction_id is not None
        assert result.specialized_result is not None
        assert result.population_result.extracted_items == 5
        assert result.population_result.quality_flags == []
        assert result.started_at is not None and result.completed_at is not None

        items = await store.list_items(job.id)
        statuses = {i.content: i.status for i in items}
        assert statuses["Sixty percent automation rate within six months"] == ItemStatus.APPROVED
        assert statuses["Sarah Lee, business owner"] == ItemStatus.PENDING

    async def test_stages_never_move_backwards(self, store, settings, gateway, make_job, content):
        job = await make_job()
        seen = []

        async def on_progress(job_id, progress):
            seen.append(progress.stage.order)

        await build(store, settings, gateway).start(job.id, content, on_progress=on_progress)

        assert seen == sorted(seen)
        assert set(seen) == {0, 1, 2, 3}

    async def test_resumes_from_persisted_outputs(self, store, settings, gateway, make_job, content):
        job = await make_job()
        orchestrator = build(store, settings, gateway)
        await orchestrator.start(job.id, content)
        await store.update_job(job.id, status=JobStatus.FAILED)
        gateway.calls.clear()

        result = await orchestrator.start(job.id, content, from_stage=PipelineStage.TAB_POPULATION)

        assert result.status == JobStatus.COMPLETE
        assert gateway.calls == []


class TestFailures:
    """Tests for stage failures."""

    async def test_failure_does_not_leak_into_later_stages(self, store, settings, make_job, content):
        responses = kickoff_responses()
        responses[GatewayTask.EXTRACT_SPECIALIZED] = GatewayTimeoutError(
            GatewayTask.EXTRACT_SPECIALIZED, "extract_specialized timed out after 180s"
        )
        job = await make_job()

        result = await build(store, settings, FakeGateway(responses)).start(job.id, content)

        assert result.status == JobStatus.FAILED
        assert result.current_stage == PipelineStage.SPECIALIZED_EXTRACTION
        assert result.error.startswith("Specialized extraction failed:")
        assert "timed out" in result.error
        assert result.stage_progress.status == StageStatus.ERROR
        # Earlier outputs survive, later ones never appear
        assert result.classification_result is not None
        assert result.raw_extraction_id is not None
        assert result.specialized_result is None
        assert result.population_result is None
        assert await store.list_items(job.id) == []

    async def test_quality_gate_failure_names_the_judge(self, store, settings, make_job, content):
        job = await make_job()

        result = await build(store, settings, FakeGateway(misclassified_responses())).start(job.id, content)

        assert result.status == JobStatus.FAILED
        assert result.current_stage == PipelineStage.CLASSIFICATION
        assert "Quality gate 'classification' failed" in result.error
        # The low-quality classification stays visible
        assert result.classification_result is not None
        assert result.raw_extraction_id is None

    async def test_unexpected_error_is_recorded(self, store, settings, make_job, content):
        responses = kickoff_responses()
        responses[GatewayTask.EXTRACT_GENERAL] = RuntimeError("disk on fire")
        job = await make_job()

        result = await build(store, settings, FakeGateway(responses)).start(job.id, content)

        assert result.status == JobStatus.FAILED
        assert result.current_stage == PipelineStage.GENERAL_EXTRACTION
        assert "disk on fire" in result.error


class TestQualityVerdicts:
    """Tests for review and forced verdicts."""

    async def test_force_downgrades_fail_to_review(self, store, settings, make_job, content):
        job = await make_job()

        result = await build(store, settings, FakeGateway(misclassified_responses())).start(
            job.id, content, force=True
        )

        assert result.status == JobStatus.COMPLETE
        flags = result.population_result.quality_flags
        assert len(flags) == 1
        assert flags[0].forced
        assert flags[0].judge == "classification"
        assert flags[0].stage == PipelineStage.CLASSIFICATION
        assert any(w.startswith("Forced past failed quality gate") for w in result.population_result.warnings)

    async def test_review_penalizes_item_confidence(self, store, settings, make_job, content):
        responses = kickoff_responses()
        responses[GatewayTask.JUDGE_COVERAGE] = {"coverage_score": 0.65, "missed_entities": []}
        job = await make_job()

        result = await build(store, settings, FakeGateway(responses)).start(job.id, content)

        assert result.status == JobStatus.COMPLETE
        flags = result.population_result.quality_flags
        assert [(f.stage, f.judge, f.forced) for f in flags] == [
            (PipelineStage.GENERAL_EXTRACTION, "coverage", False)
        ]
        items = {i.content: i for i in await store.list_items(job.id)}
        item = items["Slow response times during the holiday peak"]
        assert item.confidence == pytest.approx(0.85)
        # 0.8 drops to 0.7 and loses auto-approval
        assert items["Sixty percent automation rate within six months"].status == ItemStatus.PENDING
