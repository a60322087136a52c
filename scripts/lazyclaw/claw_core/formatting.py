"""Shared text and time formatting helpers for human-facing panels."""

from __future__ import annotations

from datetime import datetime, timezone

LEVEL_STYLES = {
    "debug": "dim",
    "info": "default",
    "warn": "yellow",
    "error": "bold red",
}

OVERALL_STATUS = {
    "ok": "ok",
    "healthy": "ok",
    "degraded": "warn",
    "warn": "warn",
    "down": "error",
    "error": "error",
}


def parse_iso_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def compact_relative_age(age_seconds: float | int | None) -> str:
    if age_seconds is None:
        return "n/a"

    seconds = max(0, int(age_seconds))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_age_ms(age_ms: int | None) -> str:
    if not age_ms or age_ms < 0:
        return "-"
    return compact_relative_age(age_ms / 1000)


def format_tokens(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}k"
    return str(count)


def truncate(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def level_style(level: str) -> str:
    return LEVEL_STYLES.get(level, "default")


def overall_to_status(overall: str | None) -> str:
    return OVERALL_STATUS.get((overall or "").lower(), "warn")
