"""
Configuration settings for study-compass.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    database_url: str = Field(
        default="sqlite:///compass.db",
        description="SQLAlchemy URL of the app-state database",
    )
    app_state_key: str = Field(
        default="app-data",
        description="Key of the stored application document",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # FSRS Settings (for spaced repetition)
    # ========================================
    fsrs_desired_retention: float = Field(
        default=0.9,
        gt=0.0,
        lt=1.0,
        description="Retrievability at which a topic becomes due",
    )
    fsrs_maximum_interval: int = Field(
        default=365,
        ge=1,
        description="Longest review interval in days",
    )

    # ========================================
    # Calendar
    # ========================================
    timezone: str | None = Field(
        default=None,
        description="IANA timezone for the learner's day boundary (None = system local)",
    )

    # ========================================
    # Exam Prediction
    # ========================================
    simulation_trials: int = Field(
        default=1000,
        ge=1,
        description="Monte-Carlo trials per grade simulation",
    )
    simulation_seed: int | None = Field(
        default=None,
        description="Fixed seed for reproducible simulations",
    )

    # ========================================
    # Question Generation Service
    # ========================================
    quiz_api_url: str | None = Field(
        default=None,
        description="Base URL of the question-generation service",
    )
    quiz_api_key: str | None = Field(
        default=None,
        description="API key for the question-generation service",
    )
    quiz_timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout for question generation",
    )

    def get_memory_config(self) -> dict[str, Any]:
        """Get memory model configuration as a dictionary."""
        return {
            "target_retention": self.fsrs_desired_retention,
            "maximum_interval": self.fsrs_maximum_interval,
        }

    def has_quiz_api_configured(self) -> bool:
        """Check if the question-generation service is configured."""
        return bool(self.quiz_api_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
