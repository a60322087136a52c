"""Health check collector."""

from __future__ import annotations

from claw_core.collectors import error_kind, error_lines
from claw_core.dashboard import DashboardState
from claw_core.errors import DecodeFailure
from claw_core.formatting import overall_to_status
from claw_core.models import PanelData


def collect(state: DashboardState) -> PanelData:
    result = state.health
    errors = error_lines(state.health_error)

    if result is None:
        meta = {"overall": "unknown"}
        # Undecodable output is still worth showing verbatim.
        if isinstance(state.health_error, DecodeFailure) and state.health_error.raw:
            meta["raw"] = state.health_error.raw
        return PanelData(
            key="health",
            title="Health",
            status="error" if errors else "warn",
            items=[],
            meta=meta,
            errors=errors or ["waiting for health check"],
        )

    items = []
    for group, entries in (("channel", result.channels), ("service", result.services), ("doctor", result.doctor)):
        for entry in entries:
            items.append({"group": group, "name": entry.name, "status": entry.status, "detail": entry.detail})

    return PanelData(
        key="health",
        title="Health",
        status="warn" if errors else overall_to_status(result.overall),
        items=items,
        meta={
            "overall": result.overall,
            "probe_ms": result.probe_duration_ms,
            "gateway_reachable": result.gateway_reachable,
            "stale": error_kind(state.health_error) != "",
        },
        errors=errors,
    )
