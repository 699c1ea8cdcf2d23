"""Pipeline stage executors."""

from onboarding.pipeline.stages.classification import classify_content
from onboarding.pipeline.stages.general import extract_general
from onboarding.pipeline.stages.population import (
    PopulationOutput,
    build_items,
    item_status,
    populate_tabs,
    summarize,
)
from onboarding.pipeline.stages.specialized import extract_specialized, score_checklist

__all__ = [
    "PopulationOutput",
    "build_items",
    "classify_content",
    "extract_general",
    "extract_specialized",
    "item_status",
    "populate_tabs",
    "score_checklist",
    "summarize",
]
