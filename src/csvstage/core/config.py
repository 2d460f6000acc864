"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

import os
import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    """Platform application-data directory for csvstage.

    Windows uses %APPDATA%, macOS ~/Library/Application Support and everything
    else ~/.local/share (or $XDG_DATA_HOME when set).
    """
    if sys.platform == "win32":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "csvstage"
        return Path.home() / "AppData" / "Roaming" / "csvstage"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "csvstage"
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "csvstage"
    return Path.home() / ".local" / "share" / "csvstage"


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: CSVSTAGE_
    """

    model_config = SettingsConfigDict(
        env_prefix="CSVSTAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Staging store
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Root directory; staging files live under <data_dir>/temp/<collection>/",
    )
    sqlite_timeout: float = Field(
        default=30.0,
        description="SQLite busy timeout in seconds",
    )
    worker_threads: int = Field(
        default=4,
        ge=1,
        description="Size of the worker pool that runs blocking staging calls",
    )
    type_tags: bool = Field(
        default=True,
        description="Store per-cell value kinds so reads round-trip exactly. "
        "False falls back to sniffing types from the stored text.",
    )

    # Pagination
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Authoritative store (MongoDB)
    mongo_url: str = Field(default="mongodb://localhost:27017")
    mongo_database: str = Field(default="csvstage")
    mongo_timeout_ms: int = Field(
        default=5000,
        description="Server selection timeout for the MongoDB client",
    )
    ui_metadata_collection: str = Field(
        default="ui_metadata",
        description="Collection holding per-collection UI metadata (short names)",
    )

    # Optional static schema file (YAML); used instead of MongoDB validators
    schema_file: Path | None = Field(default=None)

    # API
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # 'json' or 'console'

    @property
    def staging_root(self) -> Path:
        """Directory under which per-collection staging directories are created."""
        return self.data_dir / "temp"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
