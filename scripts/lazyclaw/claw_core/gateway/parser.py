"""Turn one raw `openclaw logs --follow` line into a LogEvent."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from claw_core.formatting import parse_iso_timestamp
from claw_core.models import LogEvent

LEVEL_ALIASES = {
    "debug": "debug",
    "dbg": "debug",
    "trace": "debug",
    "info": "info",
    "inf": "info",
    "warn": "warn",
    "warning": "warn",
    "wrn": "warn",
    "error": "error",
    "err": "error",
    "fatal": "error",
    "critical": "error",
}

TIME_KEYS = ("time", "ts", "timestamp")
MESSAGE_KEYS = ("msg", "message")
SOURCE_KEYS = ("source", "subsystem")


def normalize_level(value: object, default: str = "info") -> str:
    text = str(value or "").strip().lower()
    return LEVEL_ALIASES.get(text, default)


def _parse_json(line: str, raw: str, now: datetime) -> LogEvent | None:
    if not line.startswith("{"):
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    if "level" not in payload and not any(key in payload for key in MESSAGE_KEYS):
        return None

    message = ""
    for key in MESSAGE_KEYS:
        if payload.get(key):
            message = str(payload[key])
            break

    timestamp = None
    for key in TIME_KEYS:
        value = payload.get(key)
        if isinstance(value, str):
            timestamp = parse_iso_timestamp(value)
            break

    source = "gateway"
    for key in SOURCE_KEYS:
        if payload.get(key):
            source = str(payload[key])
            break

    return LogEvent(
        timestamp=timestamp or now,
        level=normalize_level(payload.get("level")),
        message=message,
        raw=raw,
        source=source,
    )


def _parse_bracketed(line: str, raw: str, now: datetime) -> LogEvent | None:
    start = line.find("[")
    if start == -1:
        return None
    end = line.find("]", start)
    if end == -1:
        return None
    return LogEvent(
        timestamp=now,
        level=normalize_level(line[start + 1 : end]),
        message=line[end + 1 :].strip(),
        raw=raw,
    )


def parse_log_line(line: str, now: datetime | None = None) -> LogEvent:
    """Never raises; unknown shapes become an info event carrying the full line."""
    received = now or datetime.now(timezone.utc)
    text = line.strip()

    event = _parse_json(text, line, received)
    if event is not None:
        return event
    event = _parse_bracketed(text, line, received)
    if event is not None:
        return event
    return LogEvent(timestamp=received, level="info", message=text, raw=line)
