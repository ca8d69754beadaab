"""Structured logging configuration for the IPC inspector host."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone

from .config import resolve_log_path

# Noisy third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, tagged with the ambient trace when there is one."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(_trace_fields())

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Callers pass structured data via extra={"context": {...}}
        if hasattr(record, "context"):
            entry["context"] = record.context

        return json.dumps(entry, default=str)


def _trace_fields() -> dict:
    # Deferred: the tracing package imports get_logger from this module
    from .tracing.context import get_current_context

    context = get_current_context()
    if context is None:
        return {}
    return {"trace_id": context.trace_id, "span_id": context.span_id}


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool | None = None,
) -> None:
    """
    Configure root logging for the inspector host.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
                   Defaults to the LOG_LEVEL env var, then INFO.
        log_file: Log file path. Defaults to INSPECTOR_LOG_FILE, then
                  04_logs/inspector.log. Relative paths are project-relative.
        console: Also log to stdout. Defaults to INSPECTOR_LOG_CONSOLE (on).
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_path = resolve_log_path(log_file or os.getenv("INSPECTOR_LOG_FILE"))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if console is None:
        console = os.getenv("INSPECTOR_LOG_CONSOLE", "1").lower() not in ("0", "false", "no", "off")

    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_path),
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

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JSONFormatter}},
            "handlers": handlers,
            "loggers": {name: {"level": quiet} for name, quiet in QUIET_LOGGERS.items()},
            "root": {"level": level, "handlers": list(handlers)},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; use as ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)
