"""
Configuration management via environment variables.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lockout.engine import LockoutPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Lockout policy
    lockout_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failed attempts before an account is locked",
    )
    unlock_window_minutes: float = Field(
        default=1,
        ge=0,
        description="Minutes a lock stays in effect",
    )
    recent_failure_minutes: float = Field(
        default=5,
        ge=0,
        description="Window used by the statistics endpoint for recent failures",
    )
    lock_stripes: int = Field(
        default=64,
        ge=1,
        description="Number of striped locks guarding the lockout store",
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=8080, description="Listening port")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the API",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    service_name: str = Field(default="ADB2C Lockout API")
    service_version: str = Field(default="1.0.0")

    @computed_field
    @property
    def unlock_window(self) -> timedelta:
        return timedelta(minutes=self.unlock_window_minutes)

    @property
    def recent_failure_window(self) -> timedelta:
        return timedelta(minutes=self.recent_failure_minutes)

    @property
    def policy(self) -> LockoutPolicy:
        """Lockout policy built from the threshold and unlock window."""
        return LockoutPolicy(
            threshold=self.lockout_threshold,
            unlock_window=self.unlock_window,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
