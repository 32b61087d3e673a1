"""
Configuration settings for the ffgate API and CLI.

Values come from the environment (or a ``.env`` file) with the
``FFGATE_`` prefix, e.g. ``FFGATE_MEDIA_ROOT=/srv/media``.
"""
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="FFGATE_",
        extra="ignore",
    )

    VERSION: str = Field(default="1.0.0")

    # API server
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_WORKERS: int = Field(default=1, ge=1)
    API_RELOAD: bool = Field(default=False)
    API_LOG_LEVEL: str = Field(default="info")
    DEBUG: bool = Field(default=False)
    CORS_ORIGINS: List[str] = Field(default=["*"])
    ENABLE_METRICS: bool = Field(default=True)

    # Engine binaries
    FFMPEG_PATH: str = Field(default="ffmpeg", description="ffmpeg executable or absolute path")
    FFPROBE_PATH: str = Field(default="ffprobe", description="ffprobe executable or absolute path")

    # Workspace
    MEDIA_ROOT: Path = Field(default=Path("./media"), description="Root all client paths resolve under")
    OUTPUT_DIR: Path = Field(default=Path("outputs"), description="Output directory; relative to MEDIA_ROOT unless absolute")

    # Execution limits
    STANDARD_TIMEOUT_SECONDS: float = Field(default=600, gt=0)
    EXTENDED_TIMEOUT_SECONDS: float = Field(default=1800, gt=0)
    PROBE_TIMEOUT_SECONDS: float = Field(default=30, gt=0)
    MAX_CAPTURED_OUTPUT_BYTES: int = Field(default=50 * 1024 * 1024, gt=0)
    FRAME_PREVIEW_LIMIT: int = Field(default=10, ge=0)

    @field_validator("API_LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {v}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
