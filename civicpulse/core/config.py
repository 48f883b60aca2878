"""
Settings and environment management module for the civicpulse service.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development (no variable is required)
- Singleton pattern via @lru_cache for efficient access
- Optional text-generation credential: without GROQ_API_KEY the pipeline
  answers from the data-grounded handler drafts only

Environment Variables:
- GROQ_API_KEY: credential for the OpenAI-compatible text-generation endpoint (optional)
- GROQ_BASE_URL: endpoint base URL (default: https://api.groq.com/openai/v1)
- GROQ_MODEL: model name (default: llama-3.3-70b-versatile)
- LLM_TIMEOUT_SECONDS: hard bound on the single generation call (default: 10)
- DB_FILE: JSON record file read by the file data store (default: data.json)
- RECORD_CACHE_TTL_SECONDS: read-through record cache TTL (default: 30)

Usage:
    from civicpulse.core.config import get_settings

    settings = get_settings()
    if settings.text_generation_enabled:
        ...
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        groq_api_key: Text-generation credential. None disables enhancement.
        groq_base_url: OpenAI-compatible endpoint base URL.
        groq_model: Model name sent with each request and recorded in provenance.
        llm_timeout_seconds: Timeout applied to the one generation call per query.
        llm_max_tokens: Completion token limit.
        llm_temperature: Sampling temperature.
        llm_top_p: Nucleus sampling parameter.
        db_file: Path of the JSON record file.
        record_cache_ttl_seconds: How long loaded records are reused.
        max_prompt_residents: Resident rows embedded in the enhancement prompt.
        cors_origins: Origins allowed by the CORS middleware.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Text Generation (Optional)
    # =========================================================================

    # Absent key means the enhancement gate is skipped entirely
    groq_api_key: Optional[str] = None

    # Groq exposes an OpenAI-compatible chat completions API
    groq_base_url: str = 'https://api.groq.com/openai/v1'

    groq_model: str = 'llama-3.3-70b-versatile'

    # One attempt per query, bounded by this timeout; no retries
    llm_timeout_seconds: float = 10.0

    llm_max_tokens: int = 800

    llm_temperature: float = 0.3

    llm_top_p: float = 0.9

    # =========================================================================
    # Record Store
    # =========================================================================

    # JSON array of citizen records; a missing file reads as an empty dataset
    db_file: str = 'data.json'

    record_cache_ttl_seconds: float = 30.0

    # =========================================================================
    # Pipeline Defaults
    # =========================================================================

    # Sample rows shown to the model; the full list always stays in the response
    max_prompt_residents: int = 10

    # =========================================================================
    # HTTP
    # =========================================================================

    cors_origins: List[str] = [
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    ]

    @property
    def text_generation_enabled(self) -> bool:
        return bool(self.groq_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
