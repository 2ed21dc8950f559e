"""Logging helpers for the OBS Metrics Bridge."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from typing import Any

import msgspec

from ..const import LOG_PREFIX
from ..engine import EngineLogLevel, LogSink
from .model import RuntimeConfig

_RESERVED_LOG_KEYS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


def _serialise_value(value: Any) -> Any:
    """Serialise values for JSON logs with strict type handling."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return f"[{' '.join(f'{b:02X}' for b in value)}]"
    return str(value)


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: _serialise_value(value)
        for key, value in record.__dict__.items()
        if key not in _RESERVED_LOG_KEYS and not key.startswith("_")
    }


class StructuredLogFormatter(logging.Formatter):
    """Emit JSON per log line while trimming the shared prefix."""

    PREFIX = "obsbridge."

    def format(self, record: logging.LogRecord) -> str:
        logger_name = record.name
        if logger_name.startswith(self.PREFIX):
            logger_name = logger_name[len(self.PREFIX) :]

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": logger_name,
            "message": record.getMessage(),
        }

        extras = _record_extras(record)
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return msgspec.json.encode(payload).decode("utf-8")


def engine_log_level(levelno: int) -> EngineLogLevel:
    """Map a Python logging level onto the engine's severity scale."""
    if levelno < logging.INFO:
        return EngineLogLevel.DEBUG
    if levelno < logging.WARNING:
        return EngineLogLevel.INFO
    if levelno < logging.ERROR:
        return EngineLogLevel.WARNING
    return EngineLogLevel.ERROR


class EngineLogHandler(Handler):
    """Forward records to the host engine's log function.

    Lines are tagged with the module prefix followed by any ``extra`` fields
    rendered as ``key=value`` pairs.
    """

    def __init__(self, log_sink: LogSink, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._sink = log_sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            attrs = " ".join(f"{key}={value}" for key, value in _record_extras(record).items())
            prefix = f"{LOG_PREFIX}{attrs} " if attrs else LOG_PREFIX
            message = record.getMessage()
            if record.exc_info:
                message = f"{message}\n{logging.Formatter().formatException(record.exc_info)}"
            self._sink(engine_log_level(record.levelno), f"{prefix}{message}")
        except Exception:  # noqa: BLE001
            self.handleError(record)


def _build_handler(log_sink: LogSink | None = None) -> Handler:
    if log_sink is not None:
        return EngineLogHandler(log_sink)
    return logging.StreamHandler()


def configure_logging(config: RuntimeConfig, log_sink: LogSink | None = None) -> None:
    """Configure root logging based on runtime settings.

    With *log_sink* every record is routed to the engine log; otherwise JSON
    lines go to stderr.
    """

    level_name = "DEBUG" if config.debug_logging else "INFO"

    handler_config: dict[str, Any] = {
        "()": _build_handler,
        "level": level_name,
        "log_sink": log_sink,
    }
    if log_sink is None:
        handler_config["formatter"] = "structured"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": "obsbridge.config.logging.StructuredLogFormatter",
                }
            },
            "handlers": {
                "obsbridge": handler_config,
            },
            "root": {
                "level": level_name,
                "handlers": ["obsbridge"],
            },
        }
    )

    logging.getLogger("obsbridge").info("Logging configured at level %s", level_name)


__all__ = [
    "EngineLogHandler",
    "StructuredLogFormatter",
    "configure_logging",
    "engine_log_level",
]
