"""Instance list collector."""

from __future__ import annotations

from typing import Sequence

from claw_core.coordinator import InstanceSlot
from claw_core.dashboard import DashboardState
from claw_core.models import PanelData


def _target(slot: InstanceSlot) -> str:
    if slot.runner.is_remote:
        ssh = slot.instance.ssh
        port = f":{ssh.port}" if ssh.port else ""
        return f"ssh {ssh.destination()}{port}"
    return f"local {slot.runner.binary}"


def _badge(slot: InstanceSlot, index: int, state: DashboardState) -> str:
    if index == state.index:
        if state.status_error is not None and state.status is None:
            return "error"
        if state.connection.connected:
            return "up"
        if state.status is not None:
            return "down"
        return "pending"
    if slot.adapter.cached_status is not None:
        return "up" if slot.adapter.is_gateway_reachable() else "down"
    if slot.adapter.cached_error is not None:
        return "error"
    return "idle"


def collect(slots: Sequence[InstanceSlot], state: DashboardState) -> PanelData:
    items = []
    for index, slot in enumerate(slots):
        items.append(
            {
                "name": slot.name,
                "target": _target(slot),
                "current": index == state.index,
                "badge": _badge(slot, index, state),
                "tags": ", ".join(slot.instance.tags),
            }
        )

    current_badge = items[state.index]["badge"] if 0 <= state.index < len(items) else "idle"
    status = {"up": "ok", "error": "error", "down": "error"}.get(current_badge, "warn")
    return PanelData(
        key="instances",
        title="Instances",
        status=status,
        items=items,
        meta={"count": len(items), "current": state.instance_name},
        errors=[],
    )
