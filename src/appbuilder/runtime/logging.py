"""
Logging setup for builds and the development server.

- Console output for humans (colour aware, respects NO_COLOR)
- Rotating JSONL file for tools that tail the build log

Log Format:
- Primary file: .appbuilder/logs/appbuilder.log (one JSON object per line)
- Each line carries timestamp, level, component, message and optional context
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "appbuilder.log"

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    DIM = "" if _NO_COLOR else "\033[2m"

    DEBUG = "" if _NO_COLOR else "\033[36m"  # Cyan
    INFO = "" if _NO_COLOR else "\033[32m"  # Green
    WARNING = "" if _NO_COLOR else "\033[33m"  # Yellow
    ERROR = "" if _NO_COLOR else "\033[31m"  # Red
    CRITICAL = "" if _NO_COLOR else "\033[35m"  # Magenta

    COMPONENT = "" if _NO_COLOR else "\033[34m"  # Blue


def _component(record: logging.LogRecord) -> str:
    """``appbuilder.core.scheduler`` -> ``scheduler`` unless set explicitly."""
    return getattr(record, "component", record.name.rsplit(".", 1)[-1])


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Example output:
    {"timestamp":"2024-01-15T10:30:45+00:00","level":"INFO","component":"scheduler",...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        # Source location for warnings and errors
        if record.levelno >= logging.WARNING:
            entry["source"] = {"file": record.pathname, "line": record.lineno}

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        component = _component(record)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level_color = self.LEVEL_COLORS.get(record.levelno, "")

        if _NO_COLOR:
            prefix = f"[{timestamp}] [{component}]"
        else:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{Colors.COMPONENT}[{component}]{Colors.RESET}"
            )

        # Level only for non-INFO messages
        if record.levelno != logging.INFO:
            level_name = record.levelname
            if not _NO_COLOR:
                level_name = f"{level_color}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


# =============================================================================
# Logger Setup
# =============================================================================


_log_dir: Path | None = None


def setup_logging(
    log_dir: Path | str | None = ".appbuilder/logs",
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> Path | None:
    """
    Initialize logging for the ``appbuilder`` logger tree.

    Args:
        log_dir: Directory for the JSONL log file (None for console only)
        level: Minimum log level
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Path to the log directory, if file logging is enabled
    """
    global _log_dir

    root_logger = logging.getLogger("appbuilder")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_dir is None:
        _log_dir = None
        return None

    _log_dir = Path(log_dir)
    _log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        _log_dir / LOG_FILENAME,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONLFormatter())
    file_handler.setLevel(level)
    root_logger.addHandler(file_handler)

    root_logger.debug(
        "Logging initialized",
        extra={"component": "logging", "context": {"log_file": str(_log_dir / LOG_FILENAME)}},
    )
    return _log_dir


def get_log_file() -> Path | None:
    """Path to the JSONL log file, if file logging is enabled."""
    if _log_dir:
        return _log_dir / LOG_FILENAME
    return None
