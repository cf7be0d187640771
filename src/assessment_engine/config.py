"""Runtime settings loaded from the environment or a ``.env`` file."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH = str(Path.home() / ".assessment_engine" / "assessment.db")


class Settings(BaseSettings):
    """Engine settings; every field can be overridden with an ``ASSESSMENT_`` variable."""

    model_config = SettingsConfigDict(
        env_prefix="ASSESSMENT_",
        env_file=".env",
        extra="ignore",
    )

    db_path: str = Field(default=DEFAULT_DB_PATH, description="SQLite database file")
    log_level: str = Field(default="WARNING", description="Root logging level")
    log_json: bool = Field(default=True, description="Emit single-line JSON log records")
    submit_grace_seconds: int = Field(
        default=60, ge=0,
        description="Seconds past the time limit before a submit counts as late",
    )
    default_max_attempts: int = Field(default=1, ge=1, description="max_attempts for imported definitions")


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance."""
    return Settings()
