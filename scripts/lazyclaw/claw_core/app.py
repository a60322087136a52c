"""TUI application entrypoint for lazyclaw."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
import time
from datetime import datetime, timezone
from typing import Callable, Sequence

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.logging import RichHandler

from claw_core.collectors import error_kind
from claw_core.collectors.health import collect as collect_health
from claw_core.collectors.instances import collect as collect_instances
from claw_core.collectors.logs import collect as collect_logs
from claw_core.collectors.overview import collect as collect_overview
from claw_core.config import AppConfig, resolve_config
from claw_core.coordinator import InstanceCoordinator, InstanceSlot, build_slot
from claw_core.dashboard import DashboardState
from claw_core.errors import GatewayError
from claw_core.gateway.messages import HealthFetched, StatusFetched
from claw_core.gateway.mock import MockRunner
from claw_core.gateway.runner import CommandRunner, cli_available, ssh_available
from claw_core.layout import panels_for, select_layout_mode
from claw_core.models import PanelData
from claw_core.panels.header import render as render_header
from claw_core.panels.health import render as render_health
from claw_core.panels.instances import render as render_instances
from claw_core.panels.logs import render as render_logs
from claw_core.panels.overview import render as render_overview
from claw_core.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)

PANEL_RENDERERS = {
    "instances": render_instances,
    "overview": render_overview,
    "health": render_health,
    "logs": render_logs,
}

RENDER_INTERVAL = 0.25


def configure_logging(level: str, log_file: str | None, live: bool) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    elif live:
        # The live screen owns the terminal.
        handler = logging.NullHandler()
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    root.addHandler(handler)


def _collect_core(state: DashboardState, slots: Sequence[InstanceSlot], log_filter: str = "") -> dict[str, PanelData]:
    return {
        "instances": collect_instances(slots, state),
        "overview": collect_overview(state, now=time.time()),
        "health": collect_health(state),
        "logs": collect_logs(state, query=log_filter),
    }


def _render_core(data: dict[str, PanelData], state: DashboardState, width: int):
    mode = select_layout_mode(width)
    header = render_header(
        instance_name=state.instance_name,
        connection=state.connection,
        updated=str(data["overview"].meta.get("updated", "n/a")),
        layout_mode=mode,
    )
    panel_map = {key: PANEL_RENDERERS[key](data[key]) for key in panels_for(mode)}

    if mode == "narrow":
        return Group(header, *panel_map.values())

    layout = Layout()
    layout.split_column(
        Layout(header, name="header", size=5 if state.connection.last_error else 4),
        Layout(name="body"),
    )

    if mode == "medium":
        layout["body"].split_row(
            Layout(Group(panel_map["instances"], panel_map["overview"]), name="left", ratio=2),
            Layout(Group(panel_map["health"], panel_map["logs"]), name="right", ratio=3),
        )
        return layout

    # wide
    layout["body"].split_column(
        Layout(name="top", ratio=2),
        Layout(panel_map["logs"], name="logs", ratio=3),
    )
    layout["body"]["top"].split_row(
        Layout(panel_map["instances"], name="instances", ratio=2),
        Layout(panel_map["overview"], name="overview", ratio=3),
        Layout(panel_map["health"], name="health", ratio=3),
    )
    return layout


def _error_dict(error: GatewayError | None) -> dict | None:
    if error is None:
        return None
    return {"kind": error_kind(error), "message": str(error)}


def _mode_name(runner: CommandRunner) -> str:
    if isinstance(runner, MockRunner):
        return "mock"
    return "ssh" if runner.is_remote else "local"


def _json_output(slot: InstanceSlot) -> str:
    adapter = slot.adapter
    health = None
    if adapter.cached_health is not None:
        health = json.loads(adapter.cached_health.raw) if adapter.cached_health.raw else None
    payload = {
        "instance": slot.name,
        "mode": _mode_name(slot.runner),
        "collected_at": datetime.now(timezone.utc).isoformat(),
        "status": adapter.cached_status.raw if adapter.cached_status is not None else None,
        "status_error": _error_dict(adapter.cached_error),
        "health": health,
        "health_error": _error_dict(adapter.health_error),
    }
    if health is None and adapter.health_raw:
        payload["health_raw"] = adapter.health_raw
    return json.dumps(payload, indent=2)


async def _fetch_once(slot: InstanceSlot) -> DashboardState:
    state = DashboardState([slot.name])
    status, health = await asyncio.gather(
        slot.adapter.fetch_status(),
        slot.adapter.fetch_health(),
        return_exceptions=True,
    )
    for outcome in (status, health):
        if isinstance(outcome, BaseException) and not isinstance(outcome, GatewayError):
            raise outcome

    state.apply(
        StatusFetched(0, 0, error=status) if isinstance(status, GatewayError) else StatusFetched(0, 0, snapshot=status)
    )
    state.apply(
        HealthFetched(0, 0, error=health) if isinstance(health, GatewayError) else HealthFetched(0, 0, result=health)
    )
    if state.status is not None:
        state.connection.connected = state.status.reachable
    return state


def _install_signal_handlers(coordinator: InstanceCoordinator) -> None:
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Future] = set()

    def spawn(coro) -> None:
        task = asyncio.ensure_future(coro)
        pending.add(task)
        task.add_done_callback(pending.discard)

    def reconnect() -> None:
        spawn(coordinator.reconnect())

    def next_instance() -> None:
        spawn(coordinator.switch_to((coordinator.current_index + 1) % len(coordinator.slots)))

    # SIGUSR1 reconnects the current instance, SIGUSR2 cycles to the next one.
    for name, handler in (("SIGUSR1", reconnect), ("SIGUSR2", next_instance)):
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            loop.add_signal_handler(signum, handler)
        except (NotImplementedError, RuntimeError):
            continue


async def _run_live(
    config: AppConfig,
    start_index: int,
    console: Console,
    runner_factory: Callable[..., CommandRunner] = CommandRunner,
    log_filter: str = "",
) -> None:
    coordinator = InstanceCoordinator.from_instances(
        config.instances,
        default_binary=config.openclaw_cli,
        command_timeout=config.command_timeout,
        queue_size=config.log_queue_size,
        runner_factory=runner_factory,
    )
    state = DashboardState([slot.name for slot in coordinator.slots], log_tail_lines=config.log_tail_lines)
    scheduler = RefreshScheduler(coordinator.request_status, config.refresh_ms)
    loop = asyncio.get_running_loop()

    def build():
        return _render_core(_collect_core(state, coordinator.slots, log_filter), state, console.size.width)

    with Live(build(), console=console, auto_refresh=False, screen=True) as live:
        try:
            await coordinator.switch_to(start_index)
            scheduler.start()
            _install_signal_handlers(coordinator)
            last_render = 0.0
            dirty = True
            while True:
                try:
                    message = await asyncio.wait_for(coordinator.next_message(), timeout=RENDER_INTERVAL)
                except asyncio.TimeoutError:
                    message = None
                if message is not None and state.apply(message):
                    dirty = True
                now = loop.time()
                if dirty and now - last_render >= RENDER_INTERVAL:
                    live.update(build(), refresh=True)
                    last_render = now
                    dirty = False
        finally:
            await scheduler.stop()
            await coordinator.close()


def _warn_missing_tools(config: AppConfig, start_index: int) -> None:
    remote = any(instance.is_remote for instance in config.instances)
    if not remote and not cli_available(config.instances[start_index].binary(config.openclaw_cli)):
        logger.warning("openclaw CLI not found on PATH")
    if remote and not ssh_available():
        logger.warning("ssh not found on PATH; remote instances will fail")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Terminal dashboard for OpenClaw gateways")
    parser.add_argument("-l", "--live", action="store_true", help="Run live dashboard loop")
    parser.add_argument("--json", action="store_true", help="Emit status/health JSON for one instance")
    parser.add_argument("--config", help="JSON config file (default: $XDG_CONFIG_HOME/lazyclaw/config.json)")
    parser.add_argument("--instance", help="Instance name to select at startup")
    parser.add_argument("--refresh-ms", type=int, help="Status refresh interval override in milliseconds")
    parser.add_argument("--filter", default="", help="Only show log lines containing this text")
    parser.add_argument("--mock", action="store_true", help="Serve simulated gateway data instead of running openclaw")
    parser.add_argument("--log-level", default=os.environ.get("LAZYCLAW_LOG_LEVEL", "warning"), help="Logging level")
    parser.add_argument("--log-file", help="Write diagnostics to this file")
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_file, args.live)

    try:
        config = resolve_config(args.config, args.refresh_ms)
    except ValueError as exc:
        print(f"lazyclaw: {exc}", file=sys.stderr)
        return 2

    start_index = 0
    if args.instance:
        names = [instance.name for instance in config.instances]
        if args.instance not in names:
            print(f"lazyclaw: unknown instance: {args.instance} (have: {', '.join(names)})", file=sys.stderr)
            return 2
        start_index = names.index(args.instance)

    if config.first_run:
        logger.info("No config found, using a single local instance")
    runner_factory: Callable[..., CommandRunner] = MockRunner if args.mock else CommandRunner
    if args.mock:
        logger.info("Mock mode: serving simulated gateway data")
    else:
        _warn_missing_tools(config, start_index)

    console = Console()

    if args.live:
        try:
            asyncio.run(_run_live(config, start_index, console, runner_factory, args.filter))
        except KeyboardInterrupt:
            return 0
        return 0

    slot = build_slot(
        config.instances[start_index],
        default_binary=config.openclaw_cli,
        command_timeout=config.command_timeout,
        runner_factory=runner_factory,
    )
    state = asyncio.run(_fetch_once(slot))

    if args.json:
        print(_json_output(slot))
        return 0 if slot.adapter.cached_error is None else 1

    data = _collect_core(state, [slot], args.filter)
    console.print(_render_core(data, state, console.size.width))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
