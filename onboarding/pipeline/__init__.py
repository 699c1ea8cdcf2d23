"""Extraction pipeline: stages, orchestration, progress and retry.

Import the submodules directly (``onboarding.pipeline.orchestrator``,
``onboarding.pipeline.runner``); this package module stays empty so that
low-level modules can import ``onboarding.pipeline.errors`` without pulling
in the orchestrator.
"""
