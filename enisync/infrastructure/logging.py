"""
Centralized Logging

Architectural Intent:
- One place that sets up the `enisync` logger tree, as JSON lines for log
  shippers or as plain text for a terminal
- Every executed OS command is logged at DEBUG, command failures at
  WARNING, cloud mutations at INFO
- Log level comes from CLI flags (--verbose, --debug) or the configured
  log_level; boto3's own loggers stay at WARNING unless debugging
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Union

ROOT_LOGGER = "enisync"

# attributes callers may attach with `extra=`; copied into JSON output
CONTEXT_FIELDS = ("device", "interface_id", "private_ip", "command")

QUIET_LOGGERS = ("boto3", "botocore", "urllib3")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def resolve_level(level: Union[int, str]) -> int:
    """Accept a logging level number or name ("debug", "WARNING", ...)."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    level: Union[int, str] = logging.WARNING,
    json_format: bool = False,
) -> None:
    """Route the enisync logger tree to stderr.

    Args:
        level: Logging level, as a number or a level name
        json_format: Emit JSON lines instead of text
    """
    level = resolve_level(level)
    formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.handlers[:] = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
