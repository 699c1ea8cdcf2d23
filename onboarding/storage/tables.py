"""
ORM tables for jobs, raw extractions and materialized items.
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text

from onboarding.storage.database import Base


class JobRecord(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True)
    session_id = Column(String(64), nullable=True, index=True)
    filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    file_path = Column(String(1024), nullable=False)

    status = Column(String(20), nullable=False, default="QUEUED", index=True)
    current_stage = Column(String(40), nullable=False, default="CLASSIFICATION")
    stage_progress = Column(JSON, nullable=True)

    classification_result = Column(JSON, nullable=True)
    raw_extraction_id = Column(String(36), nullable=True)
    specialized_result = Column(JSON, nullable=True)
    population_result = Column(JSON, nullable=True)
    # Review verdicts from completed stages, kept across retries
    quality_flags = Column(JSON, nullable=False, default=list)

    error = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<JobRecord(id={self.id!r}, status={self.status!r}, stage={self.current_stage!r})>"


class RawExtractionRecord(Base):
    __tablename__ = "raw_extractions"

    id = Column(String(36), primary_key=True)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    content_type = Column(String(40), nullable=False)
    source_filename = Column(String(255), nullable=False)
    source_mime_type = Column(String(100), nullable=False)
    raw_json = Column(JSON, nullable=False)
    entity_count = Column(Integer, nullable=False, default=0)
    processing_time_ms = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ExtractedItemRecord(Base):
    __tablename__ = "extracted_items"

    id = Column(String(36), primary_key=True)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    session_id = Column(String(64), nullable=True, index=True)
    type = Column(String(40), nullable=False)
    category = Column(String(40), nullable=True)
    content = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="PENDING")
    profile = Column(String(20), nullable=False)
    profile_section = Column(String(40), nullable=False)
    source_quote = Column(Text, nullable=True)
    source_speaker = Column(String(255), nullable=True)
    source_timestamp = Column(String(40), nullable=True)
    structured_data = Column(JSON, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
