"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")

    GENERATOR_CONFIG_PATH: str = "app_config.json"
    GENERATOR_TARGET: str = "interview.generator"

    DEFAULT_DURATION_MIN: int = Field(default=18, ge=1)
    SESSION_RETENTION_MINUTES: int = Field(default=0, ge=0)

    SERVER_URL: str = "ws://localhost:4000/ws"
    FOLLOWUP_WATCHDOG_SECONDS: float = Field(default=5.0, gt=0)
    FINISH_WATCHDOG_SECONDS: float = Field(default=6.0, gt=0)
    LISTEN_DELAY_SECONDS: float = Field(default=0.2, ge=0)
    SPEECH_LANGUAGE: str = "en-US"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()
