"""
Logging setup for the auditor CLI.

Logs go to stderr so stdout carries only comparison output. `--log-json`
switches to one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import TextIO

SERVICE_NAME = "migration-auditor"

# Record attributes copied into output when present
CONTEXT_FIELDS = ("correlation_id", "job", "api_endpoint", "status_code", "duration_ms")

# Fields stamped onto every record while a LogContext is open
_active_context: dict[str, object] = {}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        entry.update({name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)})

        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """`HH:MM:SS LEVEL logger: message [context]`, coloured on a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        message = record.getMessage()
        context = [
            f"{name}={getattr(record, name)}"
            for name in ("correlation_id", "job", "status_code")
            if hasattr(record, name)
        ]
        if context:
            message = f"{message} [{', '.join(context)}]"

        if record.exc_info:
            message += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return f"{timestamp} {level} {record.name}: {message}"


def _context_record_factory(base):
    def factory(*args, **kwargs):
        record = base(*args, **kwargs)
        for key, value in _active_context.items():
            setattr(record, key, value)
        return record
    factory.wraps_context = True
    return factory


def setup_structured_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Route all logging to a single handler on stderr (or stream).

    Args:
        level: Logging level for the auditor and the root logger
        json_format: Emit JSON lines instead of human-readable text
        stream: Destination, stderr when omitted

    Returns:
        The migration_auditor package logger
    """
    stream = stream or sys.stderr
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanReadableFormatter(use_colors=stream.isatty())

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Retries are reported by RestClient
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    logger = logging.getLogger("migration_auditor")
    logger.setLevel(level)
    return logger


class LogContext:
    """
    Stamp fields onto every record logged while the block is open,
    including records from worker threads.

    Example:
        with LogContext(correlation_id="acme/api#42->99"):
            logger.info("Comparing artifacts")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._saved: dict[str, object] = {}

    def __enter__(self) -> "LogContext":
        factory = logging.getLogRecordFactory()
        if not getattr(factory, "wraps_context", False):
            logging.setLogRecordFactory(_context_record_factory(factory))
        self._saved = dict(_active_context)
        _active_context.update(self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _active_context.clear()
        _active_context.update(self._saved)


def log_api_call(
    logger: logging.Logger,
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
) -> None:
    """Log one HTTP exchange: DEBUG when it succeeded, WARNING for 4xx, ERROR for 5xx."""
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.DEBUG

    logger.log(
        level,
        f"{method} {url} -> {status_code} ({duration_ms:.0f}ms)",
        extra={"api_endpoint": url, "status_code": status_code, "duration_ms": duration_ms},
    )
