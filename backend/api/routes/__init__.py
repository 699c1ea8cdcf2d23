"""API routes package."""

from . import jobs
from . import upload

__all__ = ["jobs", "upload"]
