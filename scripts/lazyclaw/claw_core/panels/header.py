"""Header renderer."""

from __future__ import annotations

from rich.panel import Panel

from claw_core.dashboard import ConnectionState
from claw_core.panels import border_for, titled


def render(instance_name: str, connection: ConnectionState, updated: str, layout_mode: str) -> Panel:
    state = "[green]connected[/green]" if connection.connected else "[red]disconnected[/red]"
    text = (
        f"Instance: [bold]{instance_name}[/bold]   "
        f"Gateway: {state}   "
        f"Version: [bold]{connection.gateway_version or 'n/a'}[/bold]   "
        f"Updated: [bold]{updated}[/bold]   "
        f"Layout: [bold]{layout_mode}[/bold]"
    )
    if connection.last_error:
        text += f"\n[red]{connection.last_error}[/red]"
    return Panel(text, title=titled("lazyclaw"), border_style=border_for("ok" if connection.connected else "warn"))
