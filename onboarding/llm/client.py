"""Ollama LLM client configuration."""

from functools import lru_cache

from langchain_ollama import OllamaLLM
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    ollama_base_url: str = "http://localhost:11434"
    model_name: str = "gpt-oss:20b"
    # Judges can run on a smaller model than extraction.
    judge_model_name: str | None = None
    temperature: float = 0.0
    request_timeout: int = 120
    num_ctx: int = 32768
    num_predict: int = 8192  # Max tokens to generate


@lru_cache
def get_llm_settings() -> LLMSettings:
    """Get cached LLM settings."""
    return LLMSettings()


def create_llm_client(settings: LLMSettings | None = None, for_judging: bool = False) -> OllamaLLM:
    """Create configured Ollama LLM client.

    Args:
        settings: Optional custom settings. Uses defaults if not provided.
        for_judging: Use the judge model when one is configured.

    Returns:
        Configured OllamaLLM instance.
    """
    settings = settings or get_llm_settings()
    model = settings.model_name
    if for_judging and settings.judge_model_name:
        model = settings.judge_model_name

    return OllamaLLM(
        model=model,
        base_url=settings.ollama_base_url,
        temperature=settings.temperature,
        timeout=settings.request_timeout,
        num_ctx=settings.num_ctx,
        num_predict=settings.num_predict,
        # format="json" is not respected by every model; JSON is recovered
        # from free text in parsing.py instead.
    )
