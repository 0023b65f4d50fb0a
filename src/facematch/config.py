"""Environment-based configuration for FaceMatch."""

from __future__ import annotations

from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACEMATCH_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEMATCH_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Matching
    recognition_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    duplicate_threshold: float = Field(default=0.90, ge=0.0, le=1.0)
    reject_duplicate_faces: bool = False

    # Storage
    store_backend: Literal["sql", "memory"] = "sql"
    database_url: str = "sqlite:///facematch.db"
    store_images: bool = True

    # Detection
    detector: str = "payload"

    # Input limits
    max_file_size: int = Field(default=10_485_760, ge=1)

    @model_validator(mode="after")
    def _check_thresholds(self) -> Self:
        if self.duplicate_threshold < self.recognition_threshold:
            raise ValueError("duplicate_threshold must not be lower than recognition_threshold")
        return self


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
