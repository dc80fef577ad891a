"""
Logging setup for the Apps Script patch server.

Records are written as JSON to stderr, since stdout carries the MCP stdio
transport. With file logging enabled, ``app.log`` receives everything and the
``audit`` logger writes committed project changes to its own ``audit.log``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

AUDIT_LOGGER_NAME = "audit"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 30


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra_data`` fields are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        log_data.update(getattr(record, "extra_data", {}))
        return json.dumps(log_data, default=str)


def _rotating_file(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path = Path("logs"),
    enable_file_logging: bool = False
) -> None:
    """
    Configure the root and audit loggers.

    Args:
        log_level: Level name for the root logger
        log_dir: Directory for ``app.log`` and ``audit.log``
        enable_file_logging: Also write rotating log files to ``log_dir``
    """
    level = getattr(logging, log_level.upper())
    formatter = JSONFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    audit_logger = get_audit_logger()
    audit_logger.handlers.clear()
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = not enable_file_logging

    if enable_file_logging:
        log_dir.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating_file(log_dir / "app.log", formatter))
        audit_logger.addHandler(_rotating_file(log_dir / "audit.log", formatter))


def get_audit_logger() -> logging.Logger:
    """Logger that records committed project writes."""
    return logging.getLogger(AUDIT_LOGGER_NAME)
