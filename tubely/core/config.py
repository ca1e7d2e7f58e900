from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "TUBELY_"
DEFAULT_JWT_SECRET = "change-me"

# Short names accepted for a few settings; the short form wins when both are set.
ENV_ALIASES = {
    "TUBELY_ENV": "TUBELY_ENVIRONMENT",
    "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
}

_ENV_CONFIG = SettingsConfigDict(
    env_prefix=ENV_PREFIX,
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
)


class Secrets(BaseSettings):
    """Credentials kept apart from the rest of the configuration so they never show up in dumps."""

    model_config = _ENV_CONFIG

    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET, repr=False)
    aws_access_key_id: Optional[str] = Field(default=None, repr=False)
    aws_secret_access_key: Optional[str] = Field(default=None, repr=False)


class Settings(BaseSettings):
    """Runtime configuration for the Tubely API, the upload pipeline and the CLI."""

    model_config = _ENV_CONFIG

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0")
    log_level: str = Field(default="info")

    database_url: str = Field(default="sqlite+aiosqlite:///./tubely.db", description="Async SQLAlchemy DSN.")
    auto_create_schema: bool = Field(default=True, description="Create missing tables on startup.")

    storage_backend: Literal["local", "s3"] = Field(default="local")
    local_storage_base_path: Path = Field(default=Path("objects"), description="Root of the local object store.")
    s3_bucket: str = Field(default="tubely-private", min_length=1, description="Bucket receiving published videos.")
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Custom endpoint for S3 compatible stores.")
    presign_ttl_s: int = Field(default=15 * 60, gt=0, description="Validity of signed retrieval URLs.")

    max_upload_bytes: int = Field(default=1 << 30, gt=0, description="Hard ceiling on upload request bodies.")
    form_memory_bytes: int = Field(default=32 << 20, gt=0, description="Bytes of a file part kept in memory.")
    allowed_video_types: tuple[str, ...] = Field(default=("video/mp4",))
    staging_dir: Optional[Path] = Field(default=None, description="Staged artifacts; system temp when unset.")

    ffmpeg_path: str = Field(default="ffmpeg")
    ffprobe_path: str = Field(default="ffprobe")
    media_tool_timeout_s: float = Field(default=300.0, gt=0, description="Upper bound on ffmpeg/ffprobe runtime.")
    aspect_tolerance: float = Field(default=0.02, ge=0)

    jwt_algorithm: str = Field(default="HS256")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, exclude=True)

    @field_validator("allowed_video_types")
    @classmethod
    def _normalise_media_types(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.strip().lower() for item in value if item.strip())

    @model_validator(mode="after")
    def _memory_within_upload_limit(self) -> "Settings":
        if self.form_memory_bytes > self.max_upload_bytes:
            self.form_memory_bytes = self.max_upload_bytes
        return self

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def is_production(self) -> bool:
        return self.environment_lower in {"production", "prod"}


def _apply_env_aliases() -> None:
    for short, canonical in ENV_ALIASES.items():
        value = os.getenv(short)
        if value:
            os.environ[canonical] = value


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)
    _apply_env_aliases()

    settings = Settings()
    if settings.is_production and settings.secrets.jwt_secret == DEFAULT_JWT_SECRET:
        raise ValueError("Production environment must have a non-default JWT secret.")
    return settings


__all__ = ["Settings", "Secrets", "get_settings", "ENV_ALIASES"]
