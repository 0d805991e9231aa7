"""
Configuration and settings for the blog backend.
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
    port: int = Field(default=5000)
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Sessions (Redis when configured)
    redis_url: Optional[str] = Field(default=None)
    session_key_prefix: str = Field(default="blog:session:")
    session_ttl_seconds: int = Field(default=24 * 60 * 60)
    session_cookie_name: str = Field(default="blog_session")
    session_cookie_secure: bool = Field(default=False)

    # S3-compatible asset storage
    asset_bucket: Optional[str] = Field(default=None)
    asset_endpoint: Optional[str] = Field(default=None)
    asset_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    asset_public_base_url: Optional[str] = Field(default=None)
    asset_folder: str = Field(default="livingwater-blog")
    image_max_width: int = Field(default=1200)
    image_max_height: int = Field(default=800)

    # Admin identity
    admin_username: str = Field(default="admin")
    admin_password: str = Field(default="admin123")
    bootstrap_admin: bool = Field(default=False)

    # HTML entry pages
    public_dir: str = Field(default="public")
    login_path: str = Field(default="/login")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
