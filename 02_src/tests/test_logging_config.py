"""Tests for logging configuration."""

import json
import logging

import pytest

from ipc_inspector.logging_config import JSONFormatter, get_logger, setup_logging
from ipc_inspector.tracing import create_context, use_context


def _record(message="hello", **extra):
    record = logging.LogRecord("ipc_inspector.test", logging.INFO, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logging():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        """Test a record becomes one JSON object."""
        entry = json.loads(JSONFormatter().format(_record()))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "ipc_inspector.test"
        assert "trace_id" not in entry

    def test_context_extra(self):
        """Test structured extra context is kept."""
        entry = json.loads(JSONFormatter().format(_record(context={"endpoint_id": 3})))

        assert entry["context"] == {"endpoint_id": 3}

    def test_ambient_trace(self):
        """Test lines logged inside a traced call carry its ids."""
        context = create_context()

        with use_context(context):
            entry = json.loads(JSONFormatter().format(_record()))

        assert entry["trace_id"] == context.trace_id
        assert entry["span_id"] == context.span_id


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_json_file(self, tmp_path, restore_root_logging):
        """Test log lines reach the configured file as JSON."""
        log_file = tmp_path / "logs" / "inspector.log"
        setup_logging(log_level="debug", log_file=str(log_file), console=False)

        get_logger("ipc_inspector.test").info("started")
        for handler in logging.getLogger().handlers:
            handler.flush()

        (line,) = log_file.read_text(encoding="utf-8").splitlines()
        assert json.loads(line)["message"] == "started"
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
