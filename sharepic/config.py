"""
Configuration and settings for the SharePic backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")

    # Comma-separated list of allowed origins, or "*".
    cors_origin: str = Field(default="*")

    # Document store (any SQLAlchemy URL; the database name is part of it)
    database_url: Optional[str] = Field(default=None)
    photos_collection: str = Field(default="photos")
    comments_collection: str = Field(default="comments")
    ratings_collection: str = Field(default="ratings")

    # S3-compatible object storage for uploaded images
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    media_bucket: str = Field(default="images")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    media_public_base_url: Optional[str] = Field(default=None)
    media_public_read: bool = Field(default=True)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Upper bound on a single blocking backend call.
    backend_timeout_seconds: float = Field(default=10.0, gt=0)
    max_upload_bytes: int = Field(default=8 * 1024 * 1024, gt=0)

    @property
    def media_configured(self) -> bool:
        return bool(self.s3_endpoint or self.aws_access_key_id)

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origin.split(",") if o.strip()]
        return origins or ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
