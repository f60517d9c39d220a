"""Runtime configuration for dynaform.

Process-wide defaults come from environment variables (``DYNAFORM_`` prefix)
or a ``.env`` file via pydantic-settings. Per-form overrides live in the
schema's ``FormConfig``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "FormSettings",
    "LoggingConfig",
    "get_settings",
]

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_LOG_FORMATS = ["json", "console"]


class LoggingConfig(BaseModel):
    """Pydantic model for logging configuration.

    Example YAML:
        logging:
          level: INFO
          format: json
          file: ./logs/forms.log
    """

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="console", description="Output format: 'json' or 'console'")
    file: Optional[str] = Field(default=None, description="Optional log file path")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"level must be one of: {VALID_LOG_LEVELS}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate format is a known value."""
        if v.lower() not in VALID_LOG_FORMATS:
            raise ValueError(f"format must be one of: {VALID_LOG_FORMATS}")
        return v.lower()


class FormSettings(BaseSettings):
    """Environment-based settings using pydantic-settings.

    Example:
        >>> # DYNAFORM_DEBOUNCE_MS=150
        >>> settings = FormSettings()
        >>> settings.debounce_seconds
        0.15
    """

    debounce_ms: int = Field(default=300, ge=0, description="Default debounce delay for field validation")
    fallback_error_message: str = Field(
        default="Validation error",
        min_length=1,
        description="Message used when a validator raises without a message",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: 'json' or 'console'")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    model_config = SettingsConfigDict(
        env_prefix="DYNAFORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {VALID_LOG_LEVELS}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is a known value."""
        if v.lower() not in VALID_LOG_FORMATS:
            raise ValueError(f"log_format must be one of: {VALID_LOG_FORMATS}")
        return v.lower()

    @property
    def debounce_seconds(self) -> float:
        """Debounce delay converted for ``asyncio`` timers."""
        return self.debounce_ms / 1000.0

    @property
    def logging(self) -> LoggingConfig:
        """Logging section as a ``LoggingConfig``."""
        return LoggingConfig(level=self.log_level, format=self.log_format, file=self.log_file)


@lru_cache(maxsize=1)
def get_settings() -> FormSettings:
    """Return the process-wide settings, loaded once."""
    return FormSettings()
