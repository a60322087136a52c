"""Collectors turn dashboard state into PanelData for the renderers."""

from __future__ import annotations

from claw_core.errors import ConnectionFailure, DecodeFailure, GatewayError


def error_kind(error: GatewayError | None) -> str:
    if error is None:
        return ""
    if isinstance(error, ConnectionFailure):
        return "connection"
    if isinstance(error, DecodeFailure):
        return "decode"
    return "execution"


def error_lines(error: GatewayError | None) -> list[str]:
    if error is None:
        return []
    return [f"{error_kind(error)}: {error}"]


def yes_no(value: bool) -> str:
    return "yes" if value else "no"
