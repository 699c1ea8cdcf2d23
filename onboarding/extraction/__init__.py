"""Content extraction from uploaded files."""

from onboarding.extraction.content import LoadedContent, load_content

__all__ = ["LoadedContent", "load_content"]
