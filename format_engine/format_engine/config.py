"""Format engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Settings(BaseSettings):
    """Process settings loaded from environment variables with SQLFORM_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="SQLFORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Limits
    max_input_bytes: int = 5_000_000

    # Formatting
    default_dialect: str = "oracle"

    # Telemetry
    structured_logging: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @field_validator("max_input_bytes")
    @classmethod
    def positive_limit(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_input_bytes must be positive")
        return v

    @field_validator("default_dialect", mode="before")
    @classmethod
    def lower_dialect(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded settings: max_input_bytes=%d dialect=%s",
            settings.max_input_bytes,
            settings.default_dialect,
        )

    return settings
