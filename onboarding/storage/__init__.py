"""Persistence for jobs, extractions, items and uploaded blobs."""

from onboarding.storage.blob_store import BlobNotFoundError, BlobRef, BlobStore
from onboarding.storage.database import create_db_engine, init_db
from onboarding.storage.job_store import JobStore

__all__ = [
    "BlobNotFoundError",
    "BlobRef",
    "BlobStore",
    "JobStore",
    "create_db_engine",
    "init_db",
]
