"""Health panel renderer."""

from __future__ import annotations

from claw_core.models import PanelData
from claw_core.panels import empty_panel, grid, panel_from_table, panel_from_text, styled


def render(data: PanelData):
    raw = data.meta.get("raw")
    if raw:
        # Output that was not JSON is shown as the CLI printed it.
        return panel_from_text("Health (raw)", data.status, str(raw))
    if not data.items and data.meta.get("overall") == "unknown":
        return empty_panel("Health", "; ".join(data.errors) or "No health data", data.status)

    table = grid("Check", "Status", "Detail")
    for item in data.items:
        table.add_row(
            f"{item.get('group')}: {item.get('name')}",
            styled(str(item.get("status", ""))),
            str(item.get("detail", "")),
        )
    for error in data.errors:
        table.add_row("last fetch", styled("fail"), error)

    return panel_from_table(f"Health - {str(data.meta.get('overall', '?')).upper()}", data.status, table)
