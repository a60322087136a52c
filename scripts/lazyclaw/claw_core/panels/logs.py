"""Logs panel renderer."""

from __future__ import annotations

from claw_core.formatting import level_style
from claw_core.models import PanelData
from claw_core.panels import error_suffix, grid, panel_from_table

MAX_ROWS = 25


def render(data: PanelData):
    table = grid("Time", "Level", "Source", "Message")
    table.columns[2].style = "cyan"

    if not data.items:
        table.add_row("-", "-", "-", "No logs")
    for item in data.items[-MAX_ROWS:]:
        level = str(item.get("level", "info"))
        table.add_row(
            str(item.get("time", "n/a")),
            f"[{level_style(level)}]{level}[/]",
            str(item.get("source", "-")),
            str(item.get("message", "")),
        )

    title = f"Logs /{data.meta['filter']}" if data.meta.get("filter") else "Logs"
    return panel_from_table(f"{title}{error_suffix(data)}", data.status, table)
