"""Responsive layout mode selection by terminal width."""

from __future__ import annotations

PANEL_ORDER = {
    "narrow": ["instances", "overview", "logs"],
    "medium": ["instances", "overview", "health", "logs"],
    "wide": ["instances", "overview", "health", "logs"],
}


def select_layout_mode(width: int) -> str:
    if width < 100:
        return "narrow"
    if width < 160:
        return "medium"
    return "wide"


def panels_for(mode: str) -> list[str]:
    return list(PANEL_ORDER.get(mode, PANEL_ORDER["narrow"]))
