"""Instances panel renderer."""

from __future__ import annotations

from claw_core.models import PanelData
from claw_core.panels import grid, panel_from_table, styled


def render(data: PanelData):
    table = grid("", "Instance", "State", "Target")
    table.columns[0].width = 1
    table.columns[1].style = "bold"

    for item in data.items:
        tags = str(item.get("tags") or "")
        target = str(item.get("target", ""))
        table.add_row(
            ">" if item.get("current") else "",
            str(item.get("name", "")),
            styled(str(item.get("badge", "idle"))),
            f"{target} [dim]({tags})[/]" if tags else target,
        )

    return panel_from_table(f"Instances ({data.meta.get('count', len(data.items))})", data.status, table)
