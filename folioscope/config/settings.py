"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Bounding box coordinate space per model.
# An integer N means the model emits coordinates normalized to 0..N,
# None means it emits pixel coordinates for the image it was shown.
DEFAULT_BBOX_SCALES: dict[str, int | None] = {
    "gemini-2.0-flash": 1000,
    "gemini-2.0-flash-lite": 1000,
    "gemini-2.5-flash": 1000,
    "gemini-2.5-pro": 1000,
    "gemini-3-pro": 1000,
    "glm-4.6v": 1000,
    "glm-4.6v-flash": 1000,
    "gpt-4o": None,
    "gpt-4-turbo": None,
    "claude-3-opus": None,
    "claude-3-sonnet": None,
}


class Settings(BaseSettings):
    """Application settings."""

    # Gemini (API key optional - falls back to Application Default Credentials)
    google_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 1.0
    gemini_rate_limit_rpm: int = 60

    # Extraction
    extraction_timeout_seconds: int = 360
    max_concurrency: int = 3
    render_dpi: int = 150

    # Quality pass
    refine_model: str = "gemini-2.5-pro"
    refine_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    refine_sample_size: int = Field(default=3, ge=1)
    refine_iterations: int = Field(default=1, ge=1)
    parallel_refine: int = Field(default=1, ge=1)

    # Title inference
    title_timeout_seconds: int = 30

    bbox_scales: dict[str, int | None] = Field(
        default_factory=lambda: dict(DEFAULT_BBOX_SCALES)
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
