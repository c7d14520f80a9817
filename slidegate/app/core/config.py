"""Application settings loaded from the environment and .env."""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Rate limiter settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Sliding window policy
    rate_limit_limit: int = 60  # Hits allowed per sliding interval
    rate_limit_interval_seconds: int = 60
    rate_limit_storage: Literal["memory", "redis"] = "memory"
    rate_limit_lock_enabled: bool = True  # Per-identity lock around fetch/save

    # Redis settings (only used when rate_limit_storage=redis)
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "ratelimit"
    redis_lock_timeout_seconds: float = 10.0  # Lock auto-release
    redis_lock_blocking_timeout_seconds: float = 5.0  # Max wait to acquire

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_limit", "rate_limit_interval_seconds")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator(
        "redis_lock_timeout_seconds", "redis_lock_blocking_timeout_seconds"
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("rate_limit_storage", mode="before")
    @classmethod
    def normalize_storage(cls, v: str) -> str:
        return str(v).strip().lower()

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
