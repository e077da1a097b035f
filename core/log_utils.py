"""Console logging setup for the assistant CLI.

Logs go to STDERR so results on STDOUT stay machine-readable.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Optional, TextIO

__all__ = ["LOG_LEVELS", "LOG_FORMATS", "JSONFormatter", "configure_logging", "parse_level"]

TRACE = 5
DISABLED = logging.CRITICAL + 10

LOG_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "disabled": DISABLED,
}

LOG_FORMATS = ("pretty", "json")

_PRETTY_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"
_HANDLER_NAME = "personio-assistant"

logging.addLevelName(TRACE, "TRACE")


class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def parse_level(name: str) -> int:
    try:
        return LOG_LEVELS[str(name).strip().lower()]
    except KeyError:
        choices = " | ".join(k for k in LOG_LEVELS if k != "warning")
        raise ValueError(f"unknown log level: {name!r}, must be one of: {choices}") from None


def configure_logging(level: str = "warn", fmt: str = "pretty", stream: Optional[TextIO] = None) -> None:
    """Install a single STDERR handler on the root logger.

    Calling it again replaces the handler installed by a previous call.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"unknown log format: {fmt!r}, must be one of: {', '.join(LOG_FORMATS)}")
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(_PRETTY_FORMAT))
    root.addHandler(handler)
    root.setLevel(parse_level(level))
