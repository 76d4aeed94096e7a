"""Application and tracer configuration settings.

This module provides the TracerConfig and AppConfig classes and the
settings singleton.
"""

from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from tracekit.config.env_loader import Environment, get_environment, load_env_files
from tracekit.config.validators import (
    resolve_path,
    validate_log_format,
    validate_log_level,
)
from tracekit.errors import ConfigError

log = structlog.get_logger(__name__)

DEFAULT_MAX_TRACES = 200
DEFAULT_MAX_SPANS_PER_TRACE = 500


class TracerConfig(BaseSettings):
    """Limits applied by a Tracer to its retained traces.

    Every field is optional; values come from keyword arguments first, then
    from ``TRACEKIT_*`` environment variables, then from the defaults below.
    ``min_duration`` is in milliseconds, the unit of every span timestamp.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACEKIT_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    max_traces: int = Field(
        default=DEFAULT_MAX_TRACES, ge=1, description="Completed traces kept (FIFO eviction)"
    )
    max_spans_per_trace: int = Field(
        default=DEFAULT_MAX_SPANS_PER_TRACE,
        ge=1,
        description="Spans kept per trace; extra children and merges are dropped",
    )
    min_duration: float = Field(
        default=0.0, ge=0, description="Traces shorter than this (ms) are not retained"
    )


class AppConfig(BaseSettings):
    """Process-wide settings for logging and environment selection."""

    model_config = SettingsConfigDict(
        env_prefix="TRACEKIT_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(default="console", description="Console log format (json or console)")
    log_dir: Path | None = Field(
        default=None, description="Directory for the rotating JSONL log file (disabled if unset)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("log_dir", mode="before")
    @classmethod
    def resolve_paths(cls, v: Path | str | None) -> Path | None:
        """Resolve relative paths to absolute."""
        return resolve_path(v)


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    Loads .env files in priority order, then builds AppConfig from the
    process environment.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigError: If configuration validation fails.
    """
    load_env_files()

    try:
        config = AppConfig()
    except ValidationError as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise ConfigError(f"Invalid tracekit configuration: {e}") from e

    log.debug(
        "app_config_loaded",
        environment=config.environment.value,
        log_level=config.log_level,
        log_format=config.log_format,
    )
    return config


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        The AppConfig loaded on first call.
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next call reloads them."""
    global _settings
    _settings = None
