"""Tests for structured logging configuration."""

import json
import logging
import pathlib
from collections.abc import Iterator

import pytest
import structlog

from tracekit.telemetry import TRACE_SEALED, configure_logging, get_logger
from tracekit.telemetry.logger import LOG_FILE_NAME, ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    configure_logging(level="WARNING", log_dir=None, log_format="console")


def _read_entries(log_dir: pathlib.Path) -> list[dict[str, object]]:
    for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
        handler.flush()
    with open(log_dir / LOG_FILE_NAME, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


class TestLoggerConfiguration:
    """Test logger configuration and setup."""

    def test_get_logger_returns_bound_logger(self) -> None:
        """Test that get_logger returns a logger that can be used."""
        log = get_logger(__name__)
        assert hasattr(log, "info")
        assert hasattr(log, "debug")
        assert hasattr(log, "warning")

    def test_get_logger_configures_on_first_call(self) -> None:
        """Test that get_logger configures logging on first call."""
        structlog.reset_defaults()

        get_logger("tracekit.module1")
        assert structlog.is_configured()

    def test_handlers_attach_to_package_logger(self) -> None:
        """Test that the root logger is left alone."""
        root_handlers = list(logging.root.handlers)
        configure_logging(level="INFO")

        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert len(package_logger.handlers) == 1
        assert package_logger.propagate is False
        assert logging.root.handlers == root_handlers

    def test_reconfigure_replaces_handlers(self, tmp_path: pathlib.Path) -> None:
        """Test reconfigure replaces handlers."""
        configure_logging(level="INFO", log_dir=tmp_path)
        configure_logging(level="INFO", log_dir=tmp_path)
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 2

    def test_file_logging_writes_structured_json(self, tmp_path: pathlib.Path) -> None:
        """Test that logger emits structured JSON logs to file."""
        log_dir = tmp_path / "logs"
        configure_logging(level="WARNING", log_dir=log_dir)

        log = get_logger("tracekit.tracer")
        log.debug(TRACE_SEALED, trace_id="trace-123", span_count=4)

        entry = _read_entries(log_dir)[-1]
        assert entry["event"] == TRACE_SEALED
        assert entry["trace_id"] == "trace-123"
        assert entry["span_count"] == 4
        assert entry["level"] == "debug"
        assert entry["component"] == "tracer"
        assert "timestamp" in entry

    def test_file_logging_from_environment(
        self, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test file logging from environment."""
        monkeypatch.setenv("TRACEKIT_LOG_DIR", str(tmp_path))
        configure_logging()

        get_logger("tracekit.store").info("env_configured", n=1)
        assert _read_entries(tmp_path)[-1]["event"] == "env_configured"

    def test_console_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test console level filters."""
        configure_logging(level="ERROR", log_format="json")

        log = get_logger("tracekit.bus")
        log.warning("quiet_event")
        log.error("loud_event", reason="x")

        err = capsys.readouterr().err
        assert "quiet_event" not in err
        line = next(line for line in err.splitlines() if "loud_event" in line)
        assert json.loads(line)["reason"] == "x"

    def test_engine_logs_reach_file(self, tmp_path: pathlib.Path) -> None:
        """Test that tracer decisions are recorded at debug level."""
        from tracekit import create_tracer

        configure_logging(level="WARNING", log_dir=tmp_path)
        tracer = create_tracer(max_traces=1)
        tracer.start_trace("a", "request").end()
        tracer.start_trace("b", "request").end()

        events = [entry["event"] for entry in _read_entries(tmp_path)]
        assert "trace_sealed" in events
        assert "trace_evicted" in events
