"""Root logger setup for the Hifz progress service.

Production emits one JSON object per line so learner-scoped entries can be
filtered by `learner_id` or `record_date`; every other environment gets a
coloured single-line format for reading in a terminal.
"""
import logging
import sys
import json
from datetime import datetime
from typing import Any, Dict
from hifz.config import settings

HANDLER_NAME = "hifz"

# Keys services attach with `extra=`; copied into the JSON line when set
CONTEXT_FIELDS = ("learner_id", "record_date", "event_type", "request_id")

# Per-request and per-statement chatter that drowns out ingestion logs
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, including the learner context fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(
            (name, str(getattr(record, name))) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class ColoredFormatter(logging.Formatter):
    """Level name wrapped in an ANSI colour; the record itself is left untouched."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        plain = record.levelname
        record.levelname = f"{self.LEVEL_COLORS.get(plain, self.RESET)}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def _formatter() -> logging.Formatter:
    if settings.is_production:
        return JSONFormatter()
    return ColoredFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def setup_logging(log_level: str = None) -> None:
    """Install the stdout handler on the root logger.

    Without an explicit level, production logs from INFO and everything
    else from DEBUG. Re-running swaps the previously installed handler, so
    the app module and tests can both call it.
    """
    if log_level is None:
        log_level = "INFO" if settings.is_production else "DEBUG"

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(_formatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={log_level}, environment={settings.ENVIRONMENT}, "
        f"format={'JSON' if settings.is_production else 'colored'}"
    )
