"""Application settings powered by Pydantic BaseSettings."""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cosmic_gateway.cache.models import CacheConfig
from cosmic_gateway.fetch.config import DispatchConfig
from cosmic_gateway.fetch.constants import (
    DEFAULT_API_KEY,
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
)


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    nasa_api_key: str = Field(
        default=DEFAULT_API_KEY, min_length=1, validation_alias="NASA_API_KEY"
    )
    mapbox_token: str | None = Field(default=None, validation_alias="MAPBOX_TOKEN")
    nasa_base_url: str = Field(
        default=DEFAULT_BASE_URL,
        pattern=r"^https?://",
        validation_alias="NASA_BASE_URL",
    )
    request_timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0.0,
        le=300.0,
        validation_alias="REQUEST_TIMEOUT_SECONDS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")
    cache_profiles: dict[str, CacheConfig] = Field(
        default_factory=dict, validation_alias="CACHE_PROFILES"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @property
    def uses_demo_key(self) -> bool:
        """Check whether the rate-limited placeholder key is in use."""
        return self.nasa_api_key == DEFAULT_API_KEY

    @property
    def log_level_value(self) -> int:
        """Get the numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]

    def to_dispatch_config(self) -> DispatchConfig:
        """Build the dispatcher configuration from these settings."""
        return DispatchConfig(
            base_url=self.nasa_base_url,
            api_key=self.nasa_api_key,
            default_timeout_seconds=self.request_timeout_seconds,
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
