"""Streamed log buffer collector."""

from __future__ import annotations

from claw_core.dashboard import DashboardState
from claw_core.models import PanelData


def collect(state: DashboardState, limit: int = 30, query: str = "") -> PanelData:
    needle = query.lower()
    entries = []
    for event in state.logs:
        if needle and needle not in event.message.lower():
            continue
        entries.append(
            {
                "time": event.timestamp.astimezone().strftime("%H:%M:%S"),
                "level": event.level,
                "source": event.source,
                "message": event.message or event.raw,
            }
        )

    shown = entries[-limit:] if limit > 0 else entries
    errors = sum(1 for event in state.logs if event.level == "error")
    status = "ok" if shown else "warn"
    if errors:
        status = "warn"
    return PanelData(
        key="logs",
        title="Logs",
        status=status,
        items=shown,
        meta={
            "shown": len(shown),
            "buffered": len(state.logs),
            "errors": errors,
            "filter": query,
        },
        errors=[] if state.logs else ["no log lines yet"],
    )
