"""
Configuration and settings for the registration backend.
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

    # Document store. Unset means in-memory; a mongodb:// URL selects MongoDB,
    # anything else is handed to SQLAlchemy.
    database_url: Optional[str] = Field(default=None)
    mongo_database: str = Field(default="typeTillSunrise")
    registration_collection: str = Field(default="registrations")

    # Content store for uploaded photos
    upload_dir: str = Field(default="uploads")
    upload_url_prefix: str = Field(default="/uploads")
    max_upload_bytes: int = Field(default=2 * 1024 * 1024)
    allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/jpg", "image/png"]
    )

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3002)
    log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
