"""Telemetry for tracekit's own diagnostics.

This module provides:
- Structured logging via structlog
- Semantic event constants
"""

from tracekit.telemetry.events import (
    CLIENT_MESSAGE_REJECTED,
    CLIENT_SPAN_REJECTED,
    CLIENT_SPANS_IGNORED,
    CLIENT_SPANS_MERGED,
    SPAN_CAP_REACHED,
    SPAN_ENDED_AFTER_SEAL,
    SUBSCRIBER_FAILED,
    TRACE_DROPPED,
    TRACE_EVICTED,
    TRACE_FILE_LOADED,
    TRACE_SEALED,
)
from tracekit.telemetry.logger import configure_logging, get_logger

__all__ = [
    "get_logger",
    "configure_logging",
    # Event constants
    "TRACE_SEALED",
    "TRACE_DROPPED",
    "TRACE_EVICTED",
    "SPAN_CAP_REACHED",
    "SPAN_ENDED_AFTER_SEAL",
    "CLIENT_SPANS_MERGED",
    "CLIENT_SPANS_IGNORED",
    "CLIENT_SPAN_REJECTED",
    "CLIENT_MESSAGE_REJECTED",
    "SUBSCRIBER_FAILED",
    "TRACE_FILE_LOADED",
]
