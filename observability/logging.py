"""Logging setup with run-id propagation.

Every record carries the id of the pipeline run that emitted it, including
records from concurrent fetch tasks (asyncio tasks inherit the context
variable). Output goes to the console and to ``<LOG_DIR>/signal.log``,
as text or as one JSON object per line.

Usage:
    >>> setup_logging(config)
    >>> set_run_context("3f9c2a1b")
    >>> logger.info("Fetch complete | total=%d", 12)  # tagged with the run id
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILE_NAME = "signal.log"

_run_id: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")

# Attributes every LogRecord has; anything else came in through `extra=`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "run_id"}

# Third-party loggers kept at WARNING
_NOISY_LOGGERS = ("aiohttp", "asyncio", "httpx", "httpcore", "openai", "google_genai")


def set_run_context(run_id: str) -> None:
    """Tag subsequent records in this context with ``run_id``."""
    _run_id.set(run_id)


def clear_context() -> None:
    _run_id.set("-")


class ContextFilter(logging.Filter):
    """Adds ``record.run_id`` from the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp, level, logger, message, run_id; ``source`` for
    warnings and above; ``exception`` when exc_info is set; plus any
    ``extra=`` fields (non-JSON values are stringified).
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", "-"),
        }
        if record.levelno >= logging.WARNING:
            data["source"] = f"{record.filename}:{record.lineno} {record.funcName}"
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        data.update(self._extras(record))
        return json.dumps(data, ensure_ascii=False)

    @staticmethod
    def _extras(record: logging.LogRecord) -> dict[str, Any]:
        extras = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            extras[key] = value
        return extras


class TextFormatter(logging.Formatter):
    """``TIME [LEVEL] [run_id] logger: message``"""

    def __init__(self, include_date: bool = False):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(run_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S" if include_date else "%H:%M:%S",
        )


def _formatter(log_format: str, for_file: bool) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter()
    return TextFormatter(include_date=for_file)


def _file_handler(log_dir: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    """Size-based rotation when max_bytes > 0, otherwise daily at midnight."""
    log_file = log_dir / LOG_FILE_NAME
    if max_bytes > 0:
        return RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    return TimedRotatingFileHandler(
        log_file, when="midnight", interval=1, backupCount=backup_count, encoding="utf-8"
    )


def setup_logging(config: Any, verbose: bool = False) -> bool:
    """Configure root logging from the application config.

    The console uses LOG_LEVEL (DEBUG with ``verbose``); the file always
    captures DEBUG. An unwritable LOG_DIR falls back to console-only
    logging with a warning on stderr.

    Returns:
        True if file logging is enabled
    """
    context_filter = ContextFilter()
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO))
    console.setFormatter(_formatter(config.log_format, for_file=False))
    console.addFilter(context_filter)
    root.addHandler(console)

    file_enabled = False
    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = _file_handler(config.log_dir, config.log_max_bytes, config.log_backup_count)
    except OSError as e:
        print(
            f"Warning: cannot write to log directory '{config.log_dir}': {e}. "
            "Logging to console only.",
            file=sys.stderr,
        )
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_formatter(config.log_format, for_file=True))
        file_handler.addFilter(context_filter)
        root.addHandler(file_handler)
        file_enabled = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return file_enabled
