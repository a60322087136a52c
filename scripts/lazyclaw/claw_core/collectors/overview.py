"""Status snapshot collector."""

from __future__ import annotations

from claw_core.collectors import error_lines, yes_no
from claw_core.dashboard import DashboardState
from claw_core.formatting import compact_relative_age, format_age_ms, format_tokens, truncate
from claw_core.models import PanelData

MAX_RECENT_SESSIONS = 5


def collect(state: DashboardState, now: float | None = None) -> PanelData:
    snapshot = state.status
    errors = error_lines(state.status_error)

    if snapshot is None:
        return PanelData(
            key="overview",
            title="Overview",
            status="error" if errors else "warn",
            items=[],
            meta={"instance": state.instance_name},
            errors=errors or ["waiting for status"],
        )

    items: list[dict] = []
    gateway = snapshot.gateway
    if gateway is not None:
        items.append({"label": "Gateway", "value": "reachable" if gateway.reachable else "unreachable"})
        if gateway.url:
            items.append({"label": "URL", "value": gateway.url})
        if gateway.version:
            items.append({"label": "Version", "value": gateway.version})
        if gateway.reachable:
            items.append({"label": "Latency", "value": f"{gateway.connect_latency_ms}ms"})
        if gateway.error:
            items.append({"label": "Gateway error", "value": truncate(gateway.error, 80)})
    else:
        items.append({"label": "Gateway", "value": "unknown"})

    sessions = snapshot.sessions
    items.append({"label": "Sessions", "value": str(sessions.count)})
    if sessions.default_model:
        items.append({"label": "Model", "value": sessions.default_model})
    for session in sessions.recent[:MAX_RECENT_SESSIONS]:
        usage = f"{format_tokens(session.total_tokens)} tok ({session.percent_used}%)"
        if session.age_ms:
            usage = f"{usage} {format_age_ms(session.age_ms)}"
        items.append({"label": f"  {truncate(session.key, 28)}", "value": usage})

    agents = snapshot.agents
    items.append({"label": "Agents", "value": str(len(agents.agents))})
    if agents.bootstrap_pending_count:
        items.append({"label": "Bootstrap pending", "value": str(agents.bootstrap_pending_count)})
    if snapshot.channel_summary:
        items.append({"label": "Channels", "value": truncate("; ".join(snapshot.channel_summary), 80)})
    if snapshot.memory_backend:
        items.append(
            {
                "label": "Memory",
                "value": f"{snapshot.memory_backend} {snapshot.memory_files} files / {snapshot.memory_chunks} chunks",
            }
        )

    audit = snapshot.security_audit
    if audit is not None:
        items.append(
            {"label": "Security", "value": f"{audit.critical} critical, {audit.warn} warn, {audit.info} info"}
        )
    if snapshot.gateway_service is not None:
        service = snapshot.gateway_service
        items.append(
            {
                "label": "Service",
                "value": f"installed={yes_no(service.installed)} {service.runtime_short}".strip(),
            }
        )
    if snapshot.os_label:
        items.append({"label": "OS", "value": snapshot.os_label})
    if snapshot.latest_version and gateway is not None and snapshot.latest_version != gateway.version:
        items.append({"label": "Update", "value": f"{snapshot.latest_version} available"})

    if errors:
        status = "warn"
    elif gateway is not None and gateway.reachable and not (audit and audit.critical):
        status = "ok"
    elif gateway is not None and gateway.reachable:
        status = "warn"
    else:
        status = "error"

    age = None
    if state.updated_at is not None and now is not None:
        age = now - state.updated_at
    return PanelData(
        key="overview",
        title="Overview",
        status=status,
        items=items,
        meta={
            "instance": state.instance_name,
            "reachable": snapshot.reachable,
            "updated": compact_relative_age(age),
        },
        errors=errors,
    )
