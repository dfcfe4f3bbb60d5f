"""Logging setup for discovery runs: one line per record, JSON or text.

Discovery code attaches context through ``extra=``; the fields listed in
STRUCTURED_FIELDS are carried into both output formats.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

from .config import LoggingConfig

STRUCTURED_FIELDS = ("strategy", "group", "instance_id", "service", "action", "total_nodes")

# AWS SDK and HTTP pool chatter, including full request/response dumps at DEBUG
NOISY_LOGGERS = ("boto3", "botocore", "urllib3")


def _structured_fields(record: logging.LogRecord) -> dict[str, object]:
    return {key: getattr(record, key) for key in STRUCTURED_FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """Emits log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_structured_fields(record),
        }
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format; structured fields are appended as key=value pairs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _structured_fields(record)
        if not fields:
            return line
        first, sep, rest = line.partition("\n")
        context = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{first} ({context}){sep}{rest}"


def configure_logging(config: LoggingConfig, stream: TextIO | None = None) -> logging.Handler:
    """Install a single handler on the root logger and return it."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if config.format == "json" else TextFormatter())
    root.addHandler(handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return handler
