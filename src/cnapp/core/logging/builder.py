"""
Logging builder: build and apply a dictConfig from Settings, optionally
moving handler IO to a background QueueListener.

Settings used:
 - LOG_LEVEL, LOG_FORMAT, LOG_TO_STDOUT, LOG_DIR, LOG_MAX_BYTES, LOG_BACKUP_COUNT
 - ENABLE_SQL_LOGGING: DEBUG-level `sqlalchemy.engine` output (statement text)
 - LOG_USE_QUEUE: producers only enqueue records; a QueueListener thread runs the handlers
 - LOG_QUEUE_MAX_SIZE: > 0 bounds the queue; records are then dropped (and counted)
   instead of blocking the event loop when it is full
"""

from __future__ import annotations

from pathlib import Path
import logging
import logging.config
import queue as _queue
import threading
from logging.handlers import QueueHandler, QueueListener

from cnapp.config.settings import Settings
from cnapp.utils.logging import get_project_name
from .formatters import JsonFormatter, ColorFormatter
from .filters import CorrelationIdFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(correlation_id)s | %(message)s"

# Running listener and its queue, kept so stop_queue_logging() can flush them.
_QUEUE_LISTENER: QueueListener | None = None
_QUEUE: _queue.Queue | None = None

_DROPPED_LOGS_COUNT = 0
_DROPPED_LOGS_LOCK = threading.Lock()


class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler that never blocks the producer on a full bounded queue.

    A record that does not fit is dropped and counted (see get_queue_stats()).
    """

    def enqueue(self, record: logging.LogRecord) -> None:
        global _DROPPED_LOGS_COUNT
        try:
            self.queue.put_nowait(record)
        except _queue.Full:
            with _DROPPED_LOGS_LOCK:
                _DROPPED_LOGS_COUNT += 1


def get_queue_stats() -> dict:
    """Small diagnostics about queue-backed logging."""
    with _DROPPED_LOGS_LOCK:
        return {"dropped_logs": _DROPPED_LOGS_COUNT, "queue_present": _QUEUE is not None}


# -----------------------
# dictConfig builder
# -----------------------
def file_logging_enabled(settings: Settings) -> bool:
    return (not settings.LOG_TO_STDOUT) and bool(settings.LOG_DIR)


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping.

      - formatters: "standard" (colored in text mode) and "json"
      - filters: "correlation_id", "redact"
      - handlers: console + (file, error_file) when writing files, else console + error_console
      - loggers: root, sqlalchemy.engine
    """
    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": TEXT_FORMAT,
        },
        "json": {
            "()": JsonFormatter,
            "env": settings.ENV,
            "service": get_project_name(),
        },
    }

    filters = {
        "correlation_id": {"()": CorrelationIdFilter},
        "redact": {"()": RedactFilter},
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}
    if file_logging_enabled(settings):
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers.keys()),
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            # Statement text only; bound parameters may still hold personal data.
            "sqlalchemy.engine": {
                "level": "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


# --------------------------
# Entrypoint
# --------------------------
def setup_logging(settings: Settings) -> None:
    """
    Apply the logging configuration; call once at startup.

    With LOG_USE_QUEUE the handlers created by dictConfig are detached from
    every logger and handed to a QueueListener thread. The root logger gets a
    QueueHandler instead, carrying the correlation/redaction filters so they
    run in the producing context where the ContextVar is visible.
    """
    global _QUEUE_LISTENER, _QUEUE

    # a previous queue-backed setup must flush before handlers are replaced
    stop_queue_logging()

    if file_logging_enabled(settings):
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))
    root_logger = logging.getLogger()
    # dictConfig keeps existing root filters across repeated setups
    if not any(isinstance(f, CorrelationIdFilter) for f in root_logger.filters):
        root_logger.addFilter(CorrelationIdFilter())

    if not settings.LOG_USE_QUEUE:
        return

    real_handlers = list(root_logger.handlers)
    if not real_handlers:
        return

    moved = set(real_handlers)
    for logger_obj in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(logger_obj, logging.Logger):
            for handler in list(logger_obj.handlers):
                if handler in moved:
                    logger_obj.removeHandler(handler)
    for handler in real_handlers:
        root_logger.removeHandler(handler)

    max_size = settings.LOG_QUEUE_MAX_SIZE or 0
    log_queue: _queue.Queue = _queue.Queue(max_size if max_size > 0 else 0)
    queue_handler_cls = NonBlockingQueueHandler if max_size > 0 else QueueHandler

    listener = QueueListener(log_queue, *real_handlers, respect_handler_level=True)
    listener.start()

    queue_handler = queue_handler_cls(log_queue)
    queue_handler.addFilter(CorrelationIdFilter())
    queue_handler.addFilter(RedactFilter())
    root_logger.addHandler(queue_handler)

    _QUEUE_LISTENER = listener
    _QUEUE = log_queue


def stop_queue_logging() -> None:
    """Flush and stop the background listener, if one is running. Safe to call twice."""
    global _QUEUE_LISTENER, _QUEUE
    listener = _QUEUE_LISTENER
    if listener is None:
        return
    try:
        listener.stop()
    finally:
        _QUEUE_LISTENER = None
        _QUEUE = None
