"""Shared rich building blocks for the dashboard panels."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from claw_core.models import PanelData

STATUS_BORDER = {
    "ok": "green",
    "warn": "yellow",
    "error": "red",
}

VALUE_STYLE = {
    "ok": "green",
    "pass": "green",
    "running": "green",
    "up": "green",
    "warn": "yellow",
    "warning": "yellow",
    "degraded": "yellow",
    "pending": "yellow",
    "error": "red",
    "fail": "red",
    "stopped": "red",
    "down": "red",
    "idle": "dim",
}


def border_for(status: str) -> str:
    return STATUS_BORDER.get(status, "cyan")


def styled(value: str) -> str:
    """Wrap a status word in rich markup for its colour."""
    style = VALUE_STYLE.get(value.lower(), "")
    return f"[{style}]{value}[/]" if style else value


def titled(title: str) -> str:
    return f"[bold]{title}[/bold]"


def empty_panel(title: str, message: str = "No data", status: str = "warn") -> Panel:
    return Panel(Text(message, style="dim"), title=titled(title), border_style=border_for(status))


def grid(*columns: str) -> Table:
    table = Table(box=None, expand=True)
    for name in columns:
        table.add_column(name, no_wrap=name != columns[-1], overflow="fold")
    return table


def kv_table(rows: list[tuple[str, str]]) -> Table:
    table = Table(box=None, show_header=False, expand=True, pad_edge=False)
    table.add_column("key", style="bold", no_wrap=True)
    table.add_column("value", overflow="fold")
    for key, value in rows:
        table.add_row(key, value)
    return table


def panel_from_table(title: str, status: str, table: Table) -> Panel:
    return Panel(table, title=titled(title), border_style=border_for(status))


def panel_from_text(title: str, status: str, text: str) -> Panel:
    return Panel(Text(text), title=titled(title), border_style=border_for(status))


def error_suffix(data: PanelData) -> str:
    if not data.errors:
        return ""
    return f" ({data.errors[0]})"
