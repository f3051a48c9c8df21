"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Marginalia"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Persisted store
    database_url: str = "sqlite:///./marginalia.db"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Anthropic API
    # Optional on purpose: a missing key is reported per request, not at startup
    anthropic_api_key: str | None = None

    # LLM Configuration
    llm_model: str = "claude-3-5-sonnet-20241022"
    llm_max_tokens: int = 600  # critique budget
    llm_synthesize_max_tokens: int = 2400  # room for a full rewrite plus explanation
    ai_timeout_seconds: float = 25.0

    # Editing session debounce windows (seconds)
    content_save_delay: float = 0.6
    title_save_delay: float = 0.5
    thread_cleanup_delay: float = 0.8


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def sanitize_error(error: Exception, *, generic_message: str = "An internal error occurred.") -> str:
    """
    Return a user-safe error message.

    In development, returns the full exception string for debugging.
    In staging/production, returns a generic message to avoid leaking internals.
    """
    settings = get_settings()
    if settings.environment == "development":
        return str(error)
    return generic_message
