"""Unit tests for Pydantic models."""

import pytest

from onboarding.models.entities import (
    STRUCTURED_DATA_MODELS,
    CandidateEntity,
    VolumeData,
    parse_candidates,
    parse_structured_data,
)
from onboarding.models.enums import (
    EntityCategory,
    ItemType,
    JobStatus,
    PipelineStage,
    StageStatus,
)
from onboarding.models.job import Job, ProgressEvent, StageProgress
from onboarding.models.results import PopulationResult


def make_job(**fields) -> Job:
    return Job(id="job-1", filename="kickoff.txt", mime_type="text/plain", file_path="uploads/kickoff.txt", **fields)


class TestEnums:
    """Tests for enum helpers."""

    def test_stage_order(self):
        assert [s.order for s in PipelineStage] == [0, 1, 2, 3]

    def test_terminal_statuses(self):
        assert JobStatus.COMPLETE.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.QUEUED.is_terminal
        assert not JobStatus.PROCESSING.is_terminal


class TestCandidateEntity:
    """Tests for CandidateEntity model."""

    def test_defaults_missing_confidence(self):
        entity = CandidateEntity(type="GOAL", content="Cut handling time", confidence=None)
        assert entity.confidence == 0.8
        assert entity.id

    @pytest.mark.parametrize("raw, expected", [(1.4, 1.0), (-0.2, 0.0), ("0.65", 0.65), ("high", 0.8)])
    def test_confidence_is_clamped(self, raw, expected):
        assert CandidateEntity(type="GOAL", content="x", confidence=raw).confidence == expected

    def test_strips_and_normalizes(self):
        entity = CandidateEntity(type="  KPI_TARGET ", content=" CSAT 4.5 ", category="business")
        assert entity.type == "KPI_TARGET"
        assert entity.content == "CSAT 4.5"
        assert entity.category == EntityCategory.BUSINESS

    def test_unknown_category_is_cleared(self):
        assert CandidateEntity(type="GOAL", content="x", category="MARKETING").category is None

    def test_blank_content_is_invalid(self):
        with pytest.raises(ValueError):
            CandidateEntity(type="GOAL", content="   ")


class TestParseCandidates:
    """Tests for validating raw model output."""

    def test_non_list_is_reported(self):
        entities, warnings = parse_candidates({"type": "GOAL"}, "general")
        assert entities == []
        assert warnings == ["general: expected a list of entities, got dict"]

    def test_missing_value_is_silent(self):
        assert parse_candidates(None, "general") == ([], [])

    def test_blank_id_gets_generated(self):
        entities, _ = parse_candidates([{"id": "", "type": "GOAL", "content": "x"}], "general")
        assert entities[0].id

    def test_warning_names_invalid_fields(self):
        _, warnings = parse_candidates([{"type": "GOAL"}], "general")
        assert warnings == ["general: dropped entity #0 with invalid content"]


class TestStructuredData:
    """Tests for the per-type structured data registry."""

    def test_registry_covers_every_item_type(self):
        assert set(STRUCTURED_DATA_MODELS) == set(ItemType)

    def test_valid_payload(self):
        data, warning = parse_structured_data(ItemType.VOLUME_EXPECTATION, {"volume": 12000, "period": "month"})
        assert isinstance(data, VolumeData)
        assert data.volume == 12000
        assert warning is None

    def test_invalid_payload_is_discarded(self):
        data, warning = parse_structured_data(ItemType.VOLUME_EXPECTATION, {"volume": "lots"})
        assert data is None
        assert warning == "Discarded invalid structured data for VOLUME_EXPECTATION"

    def test_empty_payload(self):
        assert parse_structured_data(ItemType.GOAL, None) == (None, None)


class TestJob:
    """Tests for Job and progress views."""

    def test_progress_percent(self):
        job = make_job(
            current_stage=PipelineStage.GENERAL_EXTRACTION,
            stage_progress=StageProgress(stage=PipelineStage.GENERAL_EXTRACTION, percent=50),
        )
        assert job.progress_percent == 37
        assert make_job(status=JobStatus.COMPLETE).progress_percent == 100

    def test_stage_progress_bounds(self):
        with pytest.raises(ValueError):
            StageProgress(stage=PipelineStage.CLASSIFICATION, percent=101)

    def test_running_event_omits_final_fields(self):
        job = make_job(
            status=JobStatus.PROCESSING,
            raw_extraction_id="raw-1",
            population_result=PopulationResult(),
        )
        wire = ProgressEvent.from_job(job).to_wire()
        assert wire["jobId"] == "job-1"
        assert wire["final"] is False
        assert "population" not in wire
        assert "completedAt" not in wire

    def test_raw_extraction_id_appears_once_persisted(self):
        queued = ProgressEvent.from_job(make_job(status=JobStatus.PROCESSING)).to_wire()
        assert "rawExtractionId" not in queued

        job = make_job(
            status=JobStatus.PROCESSING,
            current_stage=PipelineStage.SPECIALIZED_EXTRACTION,
            raw_extraction_id="raw-1",
        )
        assert ProgressEvent.from_job(job).to_wire()["rawExtractionId"] == "raw-1"

    def test_final_event_is_exhaustive(self):
        job = make_job(
            status=JobStatus.COMPLETE,
            current_stage=PipelineStage.TAB_POPULATION,
            stage_progress=StageProgress(stage=PipelineStage.TAB_POPULATION, status=StageStatus.COMPLETE, percent=100),
            raw_extraction_id="raw-1",
            population_result=PopulationResult(),
        )
        wire = ProgressEvent.from_job(job, final=True).to_wire()
        assert wire["rawExtractionId"] == "raw-1"
        assert "population" in wire
        assert wire["progress"]["status"] == StageStatus.COMPLETE.value
