"""
Tests for logging configuration

Tests JSON and console formatters, setup_logging and log_with_context.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from engmetrics.core.logging_config import (
    ContextFormatter,
    JSONFormatter,
    get_logger,
    log_with_context,
    setup_logging,
)


def make_record(message="Imported 3 issue records", extra_fields=None, exc_info=None):
    record = logging.LogRecord(
        name="engmetrics.scripts.github.issue",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers after setup_logging tests"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Tests for JSONFormatter"""

    def test_basic_fields(self):
        """Test that core fields are emitted as JSON"""
        payload = json.loads(JSONFormatter().format(make_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "engmetrics.scripts.github.issue"
        assert payload["message"] == "Imported 3 issue records"
        assert payload["timestamp"].endswith("Z")

    def test_extra_fields_merged(self):
        """Test that extra_fields are flattened into the payload"""
        record = make_record(extra_fields={"data_source_id": "ds_1", "records_imported": 3})

        payload = json.loads(JSONFormatter().format(record))

        assert payload["data_source_id"] == "ds_1"
        assert payload["records_imported"] == 3

    def test_exception_included(self):
        """Test that exception text is included"""
        try:
            raise ValueError("bad page")
        except ValueError:
            import sys

            record = make_record(exc_info=sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad page" in payload["exception"]


class TestContextFormatter:
    """Tests for ContextFormatter"""

    def test_appends_context_pairs(self):
        """Test that extra fields are appended as key=value pairs"""
        formatter = ContextFormatter(fmt="%(levelname)s %(message)s")
        record = make_record(extra_fields={"run_id": "run_1", "container": "acme/api"})

        output = formatter.format(record)

        assert output.endswith("| run_id=run_1 container=acme/api")
        assert record.levelname == "INFO"


class TestSetupLogging:
    """Tests for setup_logging"""

    def test_console_only(self, restore_root_logger):
        """Test that a single console handler is installed"""
        setup_logging(level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ContextFormatter)

    def test_json_file_handler(self, restore_root_logger, tmp_path):
        """Test that a log file gets a JSON handler"""
        log_file = tmp_path / "logs" / "imports.log"

        setup_logging(level="INFO", log_file=log_file, json_output=True)

        root = logging.getLogger()
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JSONFormatter) for h in root.handlers)
        assert log_file.parent.exists()
        assert logging.getLogger("httpx").level == logging.WARNING


class TestLogWithContext:
    """Tests for log_with_context"""

    def test_passes_context_as_extra_fields(self):
        """Test that keyword context is wrapped under extra_fields"""
        logger = MagicMock(spec=logging.Logger)

        log_with_context(logger, "info", "Container imported", repository="acme/api", records_imported=2)

        logger.info.assert_called_once_with(
            "Container imported", extra={"extra_fields": {"repository": "acme/api", "records_imported": 2}}
        )

    def test_get_logger_returns_named_logger(self):
        """Test that get_logger returns the module logger"""
        assert get_logger("engmetrics.test").name == "engmetrics.test"
