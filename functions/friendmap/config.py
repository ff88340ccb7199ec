"""
Configuration and settings for the friend map backend.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATIC_DIR = Path(__file__).resolve().parent / "public"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service.

    Field names map to upper-case environment variables (``PORT``,
    ``DATABASE_URL``, ``ADMIN_TOKEN`` ...).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    cors_origins: list[str] = Field(default=["*"])
    log_level: str = Field(default="INFO")

    # Database (SQLite file unless overridden)
    database_url: str = Field(default="sqlite+pysqlite:///./friends.db")

    # Frontend pages and assets
    static_dir: str = Field(default=str(DEFAULT_STATIC_DIR))

    # Privileged routes are open when this is unset.
    admin_token: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_in_memory_backends", "FRIENDMAP_USE_IN_MEMORY_BACKENDS"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
