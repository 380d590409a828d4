"""
Teian Configuration Management Module

Provides type-safe configuration management using pydantic-settings.
Supports loading configuration from environment variables and .env files.

Usage:
    from config.settings import settings
    print(settings.db_file)
    print(settings.quota.cap_bytes)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent


class DatabaseSettings(BaseSettings):
    """Database configuration"""

    model_config = SettingsConfigDict(
        env_prefix="TEIAN_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    open_timeout: float = Field(default=5.0, description="Max seconds to wait for the store file lock at startup")
    retry_interval: float = Field(default=0.1, description="Fixed sleep between lock attempts (seconds)")
    busy_timeout: float = Field(default=5.0, description="SQLite busy timeout for writers (seconds)")


class QuotaSettings(BaseSettings):
    """Upload quota configuration"""

    model_config = SettingsConfigDict(
        env_prefix="TEIAN_QUOTA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cap_bytes: int = Field(default=50 << 20, description="Max bytes a user may upload between resets")
    reset_enabled: bool = Field(default=True, description="Run the daily quota reset")
    reset_hour: int = Field(default=0, ge=0, le=23, description="Reset hour (local time)")
    reset_minute: int = Field(default=0, ge=0, le=59, description="Reset minute (local time)")
    reset_second: int = Field(default=0, ge=0, le=59, description="Reset second (local time)")

    @field_validator("cap_bytes")
    @classmethod
    def validate_cap(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cap_bytes must not be negative")
        return v


class Settings(BaseSettings):
    """Main configuration class"""

    model_config = SettingsConfigDict(
        env_prefix="TEIAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Data directories
    data_dir: Path = PROJECT_ROOT / "data"
    db_file: Path | None = None  # Store file (default data_dir/teian.db)

    # Log configuration
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)

    @model_validator(mode="after")
    def set_defaults(self) -> Settings:
        """Set dependent default values"""
        if self.db_file is None:
            self.db_file = self.data_dir / "teian.db"
        return self

    @field_validator("data_dir", "db_file", mode="before")
    @classmethod
    def resolve_path(cls, v):
        """Resolve path"""
        if v is None:
            return v
        if isinstance(v, str):
            return Path(v)
        return v


@lru_cache
def get_settings() -> Settings:
    """Get settings singleton (with cache)"""
    return Settings()


# Global settings instance - explicit type annotation ensures IDE correctly infers type
settings: Settings = get_settings()


def reload_settings() -> Settings:
    """Reload settings (clear cache)"""
    get_settings.cache_clear()
    # Note: this does not update module-level settings variable, caller should use return value
    # To update global settings, use config package's reload_settings
    return get_settings()
