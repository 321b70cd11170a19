"""
Structured logging utilities for MasterMeter.

JSON-formatted records for log files and aggregation, colored
human-readable records for the terminal.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records as JSON objects, one per line.

    Context attached through ``create_logger_with_context`` is emitted
    under the ``context`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if context:
            log_obj["context"] = context

        return json.dumps(log_obj, default=str)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format with color codes, leaving the record untouched for other handlers."""
        color = self.COLORS.get(record.levelname, "")
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,
    backup_count: int = 5,
    console_enabled: bool = True,
    colored: bool = True,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Console output format ("json" or "text")
        log_file: Optional file path for log output
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        console_enabled: Whether to log to the console (stderr)
        colored: Whether to color text output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    if log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"
        if colored and console_enabled:
            formatter = ColoredFormatter(fmt, datefmt)
        else:
            formatter = logging.Formatter(fmt, datefmt)

    # stdout is reserved for reports
    if console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Return the logger with the given dotted name."""
    return logging.getLogger(name)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches a fixed context mapping to every record.

    The context lands on ``record.context`` (picked up by JSONFormatter)
    and is appended to the message text for plain formatters.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = dict(self.extra)
        kwargs["extra"] = extra
        suffix = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"{msg} [{suffix}]" if suffix else msg, kwargs


def create_logger_with_context(
    name: str, context: Dict[str, Any]
) -> ContextLoggerAdapter:
    """
    Create a logger with persistent context.

    Args:
        name: Logger name
        context: Mapping added to every record

    Returns:
        ContextLoggerAdapter: Logger that includes context in all messages

    Example:
        logger = create_logger_with_context("batch_processor", {"item_id": "mix.wav-1"})
        logger.info("Decoding")
        # Logs: Decoding [item_id=mix.wav-1]
    """
    return ContextLoggerAdapter(get_logger(name), context)
