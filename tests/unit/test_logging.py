"""Tests for logging setup and formatters."""

import json
import logging
import sys

import pytest

from appbuilder.runtime.logging import (
    LOG_FILENAME,
    ConsoleFormatter,
    JSONLFormatter,
    get_log_file,
    setup_logging,
)


def _record(name="appbuilder.core.scheduler", level=logging.INFO, msg="[BUILD] t3 => t3.js"):
    return logging.LogRecord(name, level, "scheduler.py", 10, msg, None, None)


class TestJSONLFormatter:
    def test_fields(self):
        entry = json.loads(JSONLFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["component"] == "scheduler"
        assert entry["message"] == "[BUILD] t3 => t3.js"
        assert "source" not in entry

    def test_warnings_carry_source_location(self):
        entry = json.loads(JSONLFormatter().format(_record(level=logging.WARNING)))
        assert entry["source"] == {"file": "scheduler.py", "line": 10}

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            "appbuilder.core.session", logging.ERROR, "session.py", 1, "x", None, exc_info
        )
        entry = json.loads(JSONLFormatter().format(record))
        assert entry["exception"] == {"type": "ValueError", "message": "bad"}


class TestConsoleFormatter:
    def test_info_has_no_level_name(self):
        output = ConsoleFormatter().format(_record())
        assert "[BUILD] t3 => t3.js" in output
        assert "INFO" not in output

    def test_warning_has_level_name(self):
        output = ConsoleFormatter().format(_record(level=logging.WARNING, msg="careful"))
        assert "WARNING" in output


class TestSetupLogging:
    """Tests for handler installation."""

    @pytest.mark.usefixtures("reset_appbuilder_logger")
    def test_file_logging(self, tmp_path):
        log_dir = setup_logging(tmp_path / "logs")

        logging.getLogger("appbuilder.core.scheduler").info("[BUILD] a => a.js")
        for handler in logging.getLogger("appbuilder").handlers:
            handler.flush()

        assert log_dir == tmp_path / "logs"
        assert get_log_file() == tmp_path / "logs" / LOG_FILENAME
        lines = (tmp_path / "logs" / LOG_FILENAME).read_text().splitlines()
        assert json.loads(lines[-1])["message"] == "[BUILD] a => a.js"

    @pytest.mark.usefixtures("reset_appbuilder_logger")
    def test_console_only(self):
        assert setup_logging(None) is None
        assert get_log_file() is None
        logger = logging.getLogger("appbuilder")
        assert len(logger.handlers) == 1
        assert not logger.propagate
