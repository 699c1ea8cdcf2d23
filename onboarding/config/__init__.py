"""Configuration package."""

from onboarding.config.logging import configure_logging
from onboarding.config.settings import Settings, get_settings

__all__ = ["Settings", "configure_logging", "get_settings"]
