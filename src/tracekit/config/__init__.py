"""Configuration for tracekit.

Tracer limits and logging settings come from keyword arguments, ``TRACEKIT_*``
environment variables and .env files, validated by Pydantic.
"""

from tracekit.config.env_loader import Environment, get_environment, load_env_files
from tracekit.config.settings import (
    DEFAULT_MAX_SPANS_PER_TRACE,
    DEFAULT_MAX_TRACES,
    AppConfig,
    TracerConfig,
    get_settings,
    load_app_config,
    reset_settings,
)

__all__ = [
    "AppConfig",
    "TracerConfig",
    "DEFAULT_MAX_TRACES",
    "DEFAULT_MAX_SPANS_PER_TRACE",
    "get_settings",
    "load_app_config",
    "reset_settings",
    "Environment",
    "get_environment",
    "load_env_files",
]
