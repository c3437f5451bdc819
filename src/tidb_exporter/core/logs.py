"""Structured logging helpers built on the standard logging module."""

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from typing import Any

from tidb_exporter.core.errors import ConfigurationError

LEVELS: Mapping[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

FORMATS = ("logfmt", "json")


class StructuredLogger(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter carrying bound key/value fields.

    Fields are attached to each record as ``record.fields`` and rendered by
    the formatters installed with configure_logging().

    Example:
        ```python
        logger = get_logger(__name__)
        logger.with_fields(scraper="global_variables").warning("slow scrape")
        ```
    """

    def __init__(
        self, logger: logging.Logger, fields: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(logger, dict(fields or {}))

    @property
    def fields(self) -> dict[str, Any]:
        """Fields bound to this logger."""
        return dict(self.extra or {})

    def with_fields(self, **fields: Any) -> "StructuredLogger":
        """Return a logger with additional bound fields."""
        return StructuredLogger(self.logger, {**self.fields, **fields})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = {**self.fields, **extra.get("fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger for the given module name."""
    return StructuredLogger(logging.getLogger(name))


def log_exception(
    message: str, logger: StructuredLogger | None = None, **fields: Any
) -> None:
    """Log message at ERROR level together with the exception being handled.

    Args:
        message: The log message.
        logger: Logger to use (default: the tidb_exporter logger).
        **fields: Additional structured fields.
    """
    target = logger or get_logger("tidb_exporter")
    target.with_fields(**fields).exception(message)


def _format_value(value: Any) -> str:
    text = str(value)
    if text == "" or any(c in text for c in ' "=\n'):
        return json.dumps(text)
    return text


class LogfmtFormatter(logging.Formatter):
    """Render records as ``ts=... level=... msg=... key=value`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        pairs: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        pairs.update(getattr(record, "fields", {}))
        if record.exc_info:
            pairs["err"] = self.formatException(record.exc_info)
        return " ".join(f"{key}={_format_value(value)}" for key, value in pairs.items())


class JSONFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "ts": record.created,
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        obj.update(getattr(record, "fields", {}))
        if record.exc_info:
            obj["err"] = self.formatException(record.exc_info)
        return json.dumps(obj, default=str)


def configure_logging(level: str = "info", fmt: str = "logfmt") -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: One of debug, info, warn, error.
        fmt: "logfmt" or "json".

    Raises:
        ConfigurationError: On an unknown level or format.
    """
    if level not in LEVELS:
        raise ConfigurationError(f"unknown log level {level!r}")
    if fmt not in FORMATS:
        raise ConfigurationError(f"unknown log format {fmt!r}")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else LogfmtFormatter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(LEVELS[level])
