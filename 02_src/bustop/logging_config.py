"""JSON logging for the monitor: one record per line, rotated under 04_logs/."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# The display polls the API every cycle; access lines would drown the log
QUIET_LOGGERS = ("uvicorn.access",)


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object.

    Records logged with ``extra={"context": {...}}`` (service, method, slot,
    location) keep that mapping under the ``context`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        context = getattr(record, "context", None)
        if context is not None:
            entry["context"] = context

        # Timestamps and enums in context are not JSON types
        return json.dumps(entry, default=str)


def build_logging_config(log_level: str, log_file: str, console: bool = True) -> dict:
    """dictConfig mapping for the rotating file and, optionally, stdout."""
    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "bustop.logging_config.JSONFormatter"}},
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        "root": {"level": log_level.upper(), "handlers": list(handlers)},
    }


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool = True,
) -> None:
    """
    Configure logging for a monitoring session.

    Args:
        log_level: Root level; falls back to LOG_LEVEL, then INFO.
        log_file: Rotating log path; defaults to 04_logs/bustop.log.
        console: Mirror records to stdout. Turn off when a terminal
                 display owns the screen.
    """
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")
    log_file = log_file or str(DEFAULT_LOG_PATH)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_level, log_file, console))


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)
