"""Centralized logging configuration for subembed."""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, Optional

LOGGER_NAME = "subembed"
LOG_FILE_NAME = "subembed.log"
DEFAULT_LOG_LEVEL = logging.INFO
CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

_logger: Optional[logging.Logger] = None
_file_handler: Optional[RotatingFileHandler] = None
_log_context: contextvars.ContextVar[Dict[str, object]] = contextvars.ContextVar(
    "subembed_log_context", default={}
)


class JSONLogFormatter(logging.Formatter):
    """Render log records as structured JSON strings."""

    DEFAULT_FIELDS: tuple[str, ...] = (
        "job_index",
        "event",
        "stage",
        "duration_ms",
        "status",
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        message = record.getMessage()
        payload: Dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "pid": record.process,
            "thread": record.threadName,
        }

        for attr in self.DEFAULT_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                payload[attr] = value

        extra_attributes = _extract_extra_attributes(record)
        if extra_attributes:
            payload["extra"] = extra_attributes

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


_RESERVED_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
        "asctime",
    }
)


def _extract_extra_attributes(record: logging.LogRecord) -> Dict[str, object]:
    extra: Dict[str, object] = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_ATTRIBUTES or key in JSONLogFormatter.DEFAULT_FIELDS:
            continue
        extra[key] = value
    return extra


class LogContextFilter(logging.Filter):
    """Inject values from context variables into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        context = _log_context.get()
        for key, value in context.items():
            setattr(record, key, value)
        return True


def _configure_console(logger: logging.Logger) -> None:
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATE_FORMAT))
    logger.addHandler(stream_handler)


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    *,
    log_dir: Path | str | None = None,
) -> logging.Logger:
    """Configure the ``subembed`` logger, optionally with a rotating JSON log file."""
    global _logger

    if _logger is None:
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(log_level)
        logger.propagate = False
        logger.addFilter(LogContextFilter())
        _configure_console(logger)
        _logger = logger

    if log_dir is not None:
        attach_log_file(log_dir)
    configure_logging_level(log_level=log_level)
    return _logger


def attach_log_file(log_dir: Path | str) -> Path:
    """Write JSON log records to ``log_dir``; replaces a previously attached file."""
    global _file_handler

    logger = get_logger()
    directory = Path(log_dir).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILE_NAME

    if _file_handler is not None:
        if Path(_file_handler.baseFilename) == path.resolve():
            return path
        logger.removeHandler(_file_handler)
        _file_handler.close()

    handler = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setFormatter(JSONLogFormatter())
    handler.setLevel(logger.level)
    logger.addHandler(handler)
    _file_handler = handler
    return path


def get_logger() -> logging.Logger:
    """Return the configured logger instance, initializing if necessary."""
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


def configure_logging_level(debug_enabled: bool = False, log_level: Optional[int] = None) -> int:
    """Adjust the global logger level based on debug preference or explicit level."""
    logger = get_logger()
    if log_level is not None:
        level = log_level
    else:
        level = logging.DEBUG if debug_enabled else DEFAULT_LOG_LEVEL
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
    return level


def get_log_context() -> Dict[str, object]:
    """Return the active structured logging context."""

    return dict(_log_context.get())


def push_log_context(**values: object) -> contextvars.Token[Dict[str, object]]:
    """Merge ``values`` into the structured logging context and return a token."""

    current = dict(_log_context.get())
    current.update({key: value for key, value in values.items() if value is not None})
    return _log_context.set(current)


def pop_log_context(token: contextvars.Token[Dict[str, object]]) -> None:
    """Restore the logging context from ``token``."""

    _log_context.reset(token)


@contextlib.contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Context manager that temporarily enriches log context with ``values``."""

    token = push_log_context(**values)
    try:
        yield
    finally:
        pop_log_context(token)


def console_info(message: str, *args: object, logger_obj: Optional[logging.Logger] = None) -> None:
    """Emit a user-facing informational message."""

    (logger_obj or get_logger()).info(message, *args)


def console_error(message: str, *args: object, logger_obj: Optional[logging.Logger] = None) -> None:
    """Emit a user-facing error message."""

    (logger_obj or get_logger()).error(message, *args)


# Initialize logger on import to maintain existing behaviour
logger = get_logger()
