"""Unit tests for the controlled vocabulary tables."""

import pytest

from onboarding.models.entities import STRUCTURED_DATA_MODELS
from onboarding.models.enums import ContentType, ItemType, ProfileKind
from onboarding.pipeline.vocabulary import (
    CHECKLISTS,
    EXPECTED_TYPES,
    PROFILE_SECTIONS,
    expected_type_coverage,
    get_checklist,
    resolve_item_type,
)


class TestRegistries:
    """Every closed table covers its whole enum."""

    def test_every_item_type_has_a_profile_section(self):
        assert set(PROFILE_SECTIONS) == set(ItemType)

    def test_every_item_type_has_a_structured_data_model(self):
        assert set(STRUCTURED_DATA_MODELS) == set(ItemType)

    def test_every_content_type_has_checklist_and_expectations(self):
        assert set(CHECKLISTS) == set(ContentType)
        assert set(EXPECTED_TYPES) == set(ContentType)

    def test_integration_lands_on_technical_profile(self):
        profile, _ = PROFILE_SECTIONS[ItemType.SYSTEM_INTEGRATION]
        assert profile == ProfileKind.TECHNICAL

    def test_get_checklist_returns_a_copy(self):
        checklist = get_checklist(ContentType.KICKOFF_SESSION)
        checklist.append("extra")
        assert "extra" not in CHECKLISTS[ContentType.KICKOFF_SESSION]


class TestResolveItemType:
    """Tests for mapping model tags onto ItemType."""

    @pytest.mark.parametrize(
        "tag, expected",
        [
            ("GOAL", ItemType.GOAL),
            ("  happy path step ", ItemType.HAPPY_PATH_STEP),
            ("guardrail-never", ItemType.GUARDRAIL_NEVER),
            ("kpi", ItemType.KPI_TARGET),
            ("integration", ItemType.SYSTEM_INTEGRATION),
        ],
    )
    def test_known_tags(self, tag, expected):
        assert resolve_item_type(tag) == expected

    def test_unknown_tag(self):
        assert resolve_item_type("FAVOURITE_COLOUR") is None


class TestExpectedTypeCoverage:
    """Tests for expected-type coverage."""

    def test_partial_coverage(self):
        coverage, missing = expected_type_coverage(
            ContentType.TECHNICAL_SESSION, ["SYSTEM_INTEGRATION", "api"]
        )
        assert coverage == 0.5
        assert missing == [ItemType.DATA_FIELD, ItemType.SECURITY_REQUIREMENT]

    def test_unknown_content_expects_nothing(self):
        assert expected_type_coverage(ContentType.UNKNOWN, []) == (1.0, [])
