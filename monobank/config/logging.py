"""
Logging configuration for the monobank acquiring SDK
Library loggers stay silent until an application opts in with configure_logging()
"""

import json
import logging
import os
import queue
from datetime import timedelta
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional

DEFAULT_LOGGER_NAME = "monobank"
DEFAULT_EVENT = "log"

# Attributes every LogRecord carries; anything else arrived through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, timedelta):
        return value.total_seconds()
    return str(value)


def _context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v
        for k, v in vars(record).items()
        if k not in _RECORD_ATTRS and k != "event" and not k.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys come in a fixed order: event, level, message, logger, time, then the
    `extra=` context of the call and finally exception/stack text.
    """

    def __init__(self, datefmt: Optional[str] = "%Y-%m-%dT%H:%M:%S%z"):
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "event": getattr(record, "event", None) or DEFAULT_EVENT,
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, self.datefmt),
        }
        payload.update(_context_fields(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        return json.dumps(payload, ensure_ascii=False, default=_json_default)


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a library logger.

    Only a NullHandler is attached; output is up to the embedding application.
    """
    log = logging.getLogger(name)
    if not any(isinstance(h, logging.NullHandler) for h in log.handlers):
        log.addHandler(logging.NullHandler())
    return log


def configure_logging(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    fmt: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a queue-backed stream handler with JSON or text formatting

    Args:
        name: Logger name
        level: Log level (defaults to MONOBANK_LOG_LEVEL or INFO)
        fmt: "json" or "text" (defaults to MONOBANK_LOG_FORMAT or json)

    Returns:
        Configured logger instance
    """
    log = get_logger(name)

    # Avoid reconfiguring already configured loggers
    if getattr(log, "_configured", False):
        return log

    level = (level or os.getenv("MONOBANK_LOG_LEVEL", "INFO")).upper()
    fmt = (fmt or os.getenv("MONOBANK_LOG_FORMAT", "json")).lower()

    log.setLevel(level)

    # Queue-based logging so handlers never block the event loop
    log_queue = queue.Queue(-1)
    log.addHandler(QueueHandler(log_queue))

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    if fmt == "json":
        stream_handler.setFormatter(JsonFormatter())
    else:
        stream_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )

    listener = QueueListener(log_queue, stream_handler, respect_handler_level=True)
    listener.start()

    log._configured = True
    log._listener = listener
    return log
