"""
Logging for the chat relay.

Every level method accepts keyword data (``logger.info("Client connected",
shared_count=3)``). Production writes one JSON object per line, anything
else gets a colored single-line format. Records emitted while a socket is
being served carry its connection ID.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

# Loggers that are too chatty at INFO for a relay under load
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "websockets": logging.WARNING,
}


def _connection_tag(record: logging.LogRecord) -> str | None:
    connection_id = getattr(record, "connection_id", None)
    if not connection_id or connection_id == "-":
        return None
    return connection_id


class StructuredFormatter(logging.Formatter):
    """One JSON document per record, tagged with the instance ID."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "instance": settings.resolved_instance_id,
        }

        connection_id = _connection_tag(record)
        if connection_id:
            entry["connection_id"] = connection_id

        data = getattr(record, "extra_data", None)
        if data:
            entry["data"] = data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}[{clock}] {record.levelname:8}{self.RESET}"]

        connection_id = _connection_tag(record)
        if connection_id:
            parts.append(f"{self.DIM}[{connection_id[:8]}]{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")

        data = getattr(record, "extra_data", None)
        if data:
            parts.append("(" + ", ".join(f"{key}={value}" for key, value in data.items()) + ")")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods take arbitrary keyword data.

    Keywords that ``Logger._log`` does not know are moved into
    ``record.extra_data``.
    """

    _LOG_KEYWORDS = frozenset({"exc_info", "extra", "stack_info", "stacklevel"})

    def _log(self, level, msg, args, **kwargs) -> None:
        data = {key: kwargs.pop(key) for key in list(kwargs) if key not in self._LOG_KEYWORDS}
        extra = dict(kwargs.pop("extra", None) or {})
        extra["extra_data"] = data or None
        # Report the caller of debug()/info()/..., not this frame
        kwargs["stacklevel"] = kwargs.get("stacklevel", 1) + 1
        super()._log(level, msg, args, extra=extra, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Safe to call again."""
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    if settings.environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    """Logger for ``name``; see the module docstring for keyword data."""
    return logging.getLogger(name)  # type: ignore


chat_gateway_logger = get_logger("chat_gateway")
