"""Overview panel renderer."""

from __future__ import annotations

from claw_core.models import PanelData
from claw_core.panels import empty_panel, kv_table, panel_from_table


def render(data: PanelData):
    if not data.items:
        return empty_panel("Overview", "; ".join(data.errors) or "No status", data.status)

    rows = [(str(item["label"]), str(item["value"])) for item in data.items]
    for error in data.errors:
        rows.append(("Last error", error))
    title = f"Overview - {data.meta.get('instance', '-')}"
    return panel_from_table(title, data.status, kv_table(rows))
