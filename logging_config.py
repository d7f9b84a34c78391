"""
logging_config.py - Logging setup for the readiness engine, provider, CLI and API.

Every module logs one event per line in the form

    event_name | key=value | key=value

Text output prints those lines as-is. JSON output (--log-json or
LOG_FORMAT=json) splits them into an object with `event` plus one member per
field, so a log pipeline can filter on `rule_id` or `rating` directly.

Environment:
    LOG_LEVEL   default level name (INFO)
    LOG_FORMAT  "json" for JSON lines, anything else for text
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

DEFAULT_LOG_LEVEL = "INFO"

# Per-request chatter from the HTTP stack; raised to WARNING unless DEBUG.
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

FIELD_SEPARATOR = " | "


def level_from_env(default: str = DEFAULT_LOG_LEVEL) -> int:
    """Resolve the logging level from LOG_LEVEL, falling back to `default`."""
    raw = os.getenv("LOG_LEVEL", default).strip().upper()
    level = logging.getLevelName(raw)
    if isinstance(level, int):
        return level
    return logging.INFO


def json_from_env() -> bool:
    return os.getenv("LOG_FORMAT", "").strip().lower() == "json"


def parse_event(message: str) -> tuple[str, dict[str, str]]:
    """Split 'event | k=v | k=v' into the event name and its fields.

    Segments without '=' are kept under `detail`.
    """
    head, *segments = message.split(FIELD_SEPARATOR)
    fields: dict[str, str] = {}
    details: list[str] = []
    for segment in segments:
        key, sep, value = segment.partition("=")
        if sep and key.strip() and " " not in key.strip():
            fields[key.strip()] = value.strip()
        else:
            details.append(segment.strip())
    if details:
        fields["detail"] = FIELD_SEPARATOR.join(details)
    return head.strip(), fields


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, module, event and fields."""

    def __init__(self) -> None:
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        event, fields = parse_event(record.getMessage())
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.name,
            "event": event,
        }
        for key, value in fields.items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: int | None = None, json_format: bool = False) -> None:
    """Configure the root logger with a single stderr handler.

    Args:
        level: Logging level. Defaults to LOG_LEVEL.
        json_format: Emit JSON lines. LOG_FORMAT=json turns this on as well.
    """
    resolved_level = level if level is not None else level_from_env()
    root = logging.getLogger()
    root.setLevel(resolved_level)
    root.handlers.clear()

    if json_format or json_from_env():
        formatter: logging.Formatter = JsonLineFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(name)-20s] %(levelname)-7s %(message)s",
            datefmt="%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    noisy_level = logging.DEBUG if resolved_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
