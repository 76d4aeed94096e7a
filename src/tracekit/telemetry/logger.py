"""Structured logging configuration using structlog.

This module configures structlog for the ``tracekit`` logger hierarchy with:
- Pretty-printed (or JSON) console output on stderr
- Optional rotating JSONL file output
- UTC timestamps
- Component tracking

Handlers are attached to the ``tracekit`` logger rather than the root logger
so that an embedding application keeps control of its own logging setup.
"""

import logging
import logging.handlers
import pathlib
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

ROOT_LOGGER_NAME = "tracekit"
LOG_FILE_NAME = "tracekit.jsonl"


def _get_log_level() -> str:
    """Get log level from configuration.

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    # Bootstrap from environment to avoid circular imports during startup.
    from tracekit.config.bootstrap import get_bootstrap_log_level  # noqa: PLC0415

    return get_bootstrap_log_level()


def _get_log_dir() -> pathlib.Path | None:
    """Get log directory path, or None when file logging is disabled."""
    from tracekit.config.bootstrap import get_bootstrap_log_dir  # noqa: PLC0415

    value = get_bootstrap_log_dir()
    return pathlib.Path(value) if value else None


def _get_log_format() -> str:
    from tracekit.config.bootstrap import get_bootstrap_log_format  # noqa: PLC0415

    return get_bootstrap_log_format()


def _add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add UTC timestamp to log event.

    Args:
        logger: The logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with timestamp added.
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _add_component(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add component name to log event.

    Args:
        logger: The logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with component added.
    """
    # Guard against None logger (can happen with third-party libraries during shutdown)
    if logger is None or not hasattr(logger, "name"):
        event_dict["component"] = "unknown"
        return event_dict

    event_dict["component"] = logger.name.split(".")[-1]
    return event_dict


def _add_component_from_event_dict(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add component name to log event from event_dict logger name.

    This processor works with structlog's event_dict which contains the logger name
    after add_logger_name processor runs (e.g. "tracekit.tracer" -> "tracer").
    """
    logger_name = event_dict.get("logger", "")
    event_dict["component"] = logger_name.split(".")[-1] if logger_name else "unknown"
    return event_dict


_FOREIGN_PRE_CHAIN = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    _add_timestamp,
    _add_component,
]


def _configure_file_handler(log_dir: pathlib.Path) -> logging.handlers.RotatingFileHandler:
    """Configure rotating file handler for JSON logs.

    Args:
        log_dir: Directory for log files.

    Returns:
        Configured RotatingFileHandler.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_dir / LOG_FILE_NAME),
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_FOREIGN_PRE_CHAIN,  # type: ignore[arg-type]
        )
    )
    return handler


def _configure_console_handler(log_format: str) -> logging.StreamHandler[Any]:
    """Configure console handler for pretty-printed or JSON logs.

    Args:
        log_format: "console" for the colored dev renderer, "json" otherwise.

    Returns:
        Configured StreamHandler.
    """
    handler = logging.StreamHandler(sys.stderr)

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=_FOREIGN_PRE_CHAIN,  # type: ignore[arg-type]
        )
    )
    return handler


def configure_logging(
    level: str | None = None,
    log_dir: pathlib.Path | None = None,
    log_format: str | None = None,
) -> None:
    """Configure structlog for structured logging.

    Arguments left as None fall back to the ``TRACEKIT_LOG_*`` environment
    variables. Calling this again replaces the handlers set by a previous call.

    Args:
        level: Console log level.
        log_dir: Directory for the JSONL log file; file logging is off when None.
        log_format: "console" or "json" console output.
    """
    log_level = level or _get_log_level()
    log_dir = log_dir if log_dir is not None else _get_log_dir()
    log_format = log_format or _get_log_format()

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    configured_level = getattr(logging, log_level.upper(), logging.WARNING)

    console_handler = _configure_console_handler(log_format)
    console_handler.setLevel(configured_level)
    package_logger.addHandler(console_handler)

    # File handler captures DEBUG+ so the engine's decisions can be audited
    if log_dir is not None:
        file_handler = _configure_file_handler(log_dir)
        file_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_component_from_event_dict,  # type: ignore[list-item]
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:  # Returns structlog.stdlib.BoundLogger
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module).

    Returns:
        Configured structlog logger instance.

    Example:
        >>> from tracekit.telemetry import get_logger
        >>> log = get_logger(__name__)
        >>> log.debug("trace_sealed", trace_id="abc", span_count=3)
    """
    # Ensure logging is configured (idempotent)
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name)
