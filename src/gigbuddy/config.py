"""Configuration settings using pydantic-settings for environment variable loading."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Automatically reads from .env file and environment variables.
    Environment variables take precedence over .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ticketmaster Discovery
    ticketmaster_api_key: str
    discovery_page_size: int = Field(default=50, ge=1, le=200)
    discovery_radius: int = Field(default=300, ge=1)
    discovery_unit: Literal["miles", "km"] = "miles"

    # Setlist.fm
    setlist_fm_api_key: str

    # Spotify OAuth
    spotify_client_id: str
    spotify_client_secret: str
    spotify_redirect_uri: str = "http://127.0.0.1:8888/callback"
    consent_timeout: float = 300.0
    search_concurrency: int = Field(default=4, ge=1)

    # HTTP
    http_timeout: float = 30.0

    # Paths
    data_path: Path = Field(default_factory=lambda: Path.home() / ".gigbuddy" / "gigbuddy.db")

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
