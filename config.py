"""
Configuration settings for the studyloop session engine.

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
        env_prefix="STUDYLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".studyloop",
        description="Directory for local state (session database, logs)",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for the session document store (defaults to sqlite in data_dir)",
    )

    # ========================================
    # Platform API (content, attempts, bookmarks, hints)
    # ========================================
    api_base_url: str = Field(
        default="http://127.0.0.1:8080/api/v1",
        description="Base URL of the study platform API",
    )
    api_key: str | None = Field(
        default=None,
        description="API key sent as X-API-Key",
    )
    api_timeout_seconds: float = Field(
        default=15.0,
        description="Per-request timeout for platform calls",
    )

    # ========================================
    # Sessions
    # ========================================
    session_ttl_hours: float = Field(
        default=4.0,
        description="Lifetime of a session document before it is treated as expired",
    )

    # ─── Timers ─────────────────────────────────────────────────────────────────
    quiz_seconds_per_item: float = Field(
        default=60.0,
        description="Per-session timer budget per question in quiz mode",
    )
    mock_seconds_per_item: float = Field(
        default=72.0,
        description="Per-session timer budget per question in mock exams",
    )
    quick_fire_seconds_per_question: float = Field(
        default=10.0,
        description="Per-question countdown in quick-fire mode",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="INFO",
        description="Loguru level for the CLI sink",
    )

    def get_database_url(self) -> str:
        """Resolve the session store URL, defaulting to a local sqlite file."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'sessions.db'}"

    def get_timer_overrides(self) -> dict[str, float]:
        """Seconds-per-item overrides keyed by mode value."""
        return {
            "quiz": self.quiz_seconds_per_item,
            "mock": self.mock_seconds_per_item,
            "quick_fire": self.quick_fire_seconds_per_question,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
