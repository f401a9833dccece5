"""
Configuration settings for exam-drill.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DRILL_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory of the JSON exam/progress/session store",
    )
    default_user_id: str = Field(
        default="local",
        description="Learner id used when the CLI is not given --user",
    )

    # ========================================
    # Session defaults
    # ========================================
    default_question_count: int = Field(
        default=10,
        ge=1,
        description="Questions per session when no count is requested",
    )
    default_time_limit_seconds: int = Field(
        default=30,
        ge=0,
        description="Per-question time limit (0 = unlimited)",
    )
    max_time_limit_seconds: int = Field(
        default=300,
        ge=0,
        description="Upper bound accepted for a per-question time limit",
    )
    clock_tick_interval_seconds: float = Field(
        default=0.25,
        gt=0,
        description="How often the countdown recomputes remaining time",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="INFO",
        description="Loguru level for the CLI stderr sink",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
