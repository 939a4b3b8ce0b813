"""
Configuration and settings for the contest backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: Optional[str]) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, SQLite accepted for local runs)
    database_url: Optional[str] = Field(default=None)
    run_migrations_on_startup: bool = Field(default=False)

    # S3-compatible object storage for poem files and author photos
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    # Required with S3_BUCKET: submission links are stored permanently.
    s3_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Queue (Redis) for outbound email
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="writory:email")

    # Auth
    firebase_project_id: Optional[str] = Field(default=None)
    admin_emails: str = Field(default="")

    # Mail
    resend_api_key: Optional[str] = Field(default=None)
    mail_from: str = Field(default="Writory <noreply@writory.com>")

    cors_origins: str = Field(default="*")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def admin_email_list(self) -> list[str]:
        return [email.lower() for email in _split_csv(self.admin_emails)]

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins) or ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
