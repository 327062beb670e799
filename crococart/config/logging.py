"""Logging setup for croco-cli: plain text by default, JSON lines on request."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any

import msgspec

from .model import RuntimeConfig

ROOT_LOGGER = "crococart"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Third-party loggers that only add noise at DEBUG.
_QUIET_LOGGERS = ("usb", "transitions")


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        # Chunk payloads are binary; show them as [DE AD BE EF].
        return f"[{bytes(value).hex(' ').upper()}]"
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record, logger names relative to ``crococart``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self._timestamp(record),
            "level": record.levelname,
            "logger": record.name.removeprefix(f"{ROOT_LOGGER}."),
            "message": record.getMessage(),
        }

        extra = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return msgspec.json.encode(entry).decode()

    @staticmethod
    def _timestamp(record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def configure_logging(config: RuntimeConfig) -> None:
    """Route all records to stderr at the level and format *config* asks for."""

    level = logging.DEBUG if config.debug_logging else logging.INFO
    formatter = "json" if config.log_format == "json" else "text"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {"format": TEXT_FORMAT},
                "json": {"()": StructuredLogFormatter},
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "level": level,
                    "formatter": formatter,
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"level": level, "handlers": ["stderr"]},
        }
    )

    logging.getLogger(ROOT_LOGGER).debug(
        "Logging configured (level=%s, format=%s)", logging.getLevelName(level), config.log_format
    )
