"""Application settings using Pydantic."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_url: str = "sqlite:///data/onboarding.db"
    blob_dir: Path = Path("data/uploads")

    # Upload validation
    max_upload_bytes: int = 50 * 1024 * 1024
    allowed_mime_types: list[str] = [
        "application/pdf",
        "text/plain",
        "text/markdown",
        "text/vtt",
        "application/json",
    ]

    # Job orchestration
    retry_ceiling: int = 3
    progress_poll_interval: float = 1.0

    # Model gateway
    gateway_timeout_seconds: float = 180.0
    gateway_max_attempts: int = 3
    gateway_max_concurrency: int = 4
    gateway_min_interval_seconds: float = 0.0

    # Quality gate thresholds (pass band)
    eval_classification_confidence: float = 0.70
    eval_hallucination_rate: float = 0.03
    eval_coverage_score: float = 0.75
    eval_stage_alignment: float = 0.80
    eval_checklist_coverage: float = 0.50

    # Quality gate floors (below these a metric fails outright)
    eval_classification_confidence_floor: float = 0.40
    eval_hallucination_rate_ceiling: float = 0.15
    eval_coverage_score_floor: float = 0.60
    eval_stage_alignment_floor: float = 0.60

    eval_llm_judges_enabled: bool = True

    # Materialization
    auto_approve_threshold: float = 0.8
    review_confidence_penalty: float = 0.1

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
