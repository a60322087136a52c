"""Config file loading and instance resolution for the dashboard."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from claw_core.dashboard import DEFAULT_LOG_TAIL_LINES
from claw_core.gateway.follower import DEFAULT_QUEUE_SIZE
from claw_core.gateway.runner import DEFAULT_COMMAND_TIMEOUT
from claw_core.models import DEFAULT_CONNECT_TIMEOUT, ConnectionMode, Instance, SSHConfig
from claw_core.scheduler import DEFAULT_REFRESH_MS

MIN_REFRESH_MS = 100


@dataclass
class AppConfig:
    instances: list[Instance] = field(default_factory=list)
    openclaw_cli: str = ""
    refresh_ms: int = DEFAULT_REFRESH_MS
    log_tail_lines: int = DEFAULT_LOG_TAIL_LINES
    log_queue_size: int = DEFAULT_QUEUE_SIZE
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    first_run: bool = False


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "lazyclaw"


def default_config_path() -> Path:
    return config_dir() / "config.json"


def load_user_config(path: str | None) -> tuple[dict, bool]:
    """Return (raw config, first_run).

    An explicit path must exist; a missing default file means first run.
    """
    explicit = path or os.environ.get("LAZYCLAW_CONFIG")
    config_path = Path(explicit) if explicit else default_config_path()
    if not config_path.exists():
        if explicit:
            raise ValueError(f"config path not found: {config_path}")
        return {}, True

    try:
        data = json.loads(config_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON config: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("invalid config: top level must be an object")
    return data, False


def _parse_ssh(raw: dict, name: str) -> SSHConfig:
    if not isinstance(raw, dict):
        raise ValueError(f"instance {name}: ssh must be an object")
    timeout = int(raw.get("connect_timeout") or 0)
    return SSHConfig(
        host=str(raw.get("host") or ""),
        port=int(raw.get("port") or 0),
        user=str(raw.get("user") or ""),
        identity_file=os.path.expanduser(str(raw.get("identity_file") or "")),
        proxy_jump=str(raw.get("proxy_jump") or ""),
        connect_timeout=timeout if timeout > 0 else DEFAULT_CONNECT_TIMEOUT,
        openclaw_cli=str(raw.get("openclaw_cli") or ""),
    )


def parse_instance(raw: dict, position: int) -> Instance | None:
    """Build one Instance; ssh entries without a host are skipped (None)."""
    if not isinstance(raw, dict):
        raise ValueError(f"instance #{position}: expected an object")
    name = str(raw.get("name") or f"instance-{position}")
    mode = ConnectionMode.parse(raw.get("mode"))
    ssh = _parse_ssh(raw["ssh"], name) if raw.get("ssh") else None
    if mode is ConnectionMode.SSH and (ssh is None or not ssh.host):
        return None
    tags = raw.get("tags") or []
    return Instance(
        name=name,
        mode=mode,
        ssh=ssh if mode is ConnectionMode.SSH else None,
        openclaw_cli=str(raw.get("openclaw_cli") or ""),
        tags=tuple(str(tag) for tag in tags),
    )


def build_instances(user_config: dict) -> list[Instance]:
    raw_instances = user_config.get("instances") or []
    if not isinstance(raw_instances, list):
        raise ValueError("invalid config: instances must be a list")

    instances = []
    for position, raw in enumerate(raw_instances, start=1):
        instance = parse_instance(raw, position)
        if instance is not None:
            instances.append(instance)

    if not instances:
        instances.append(Instance(name="Local"))
    return instances


def resolve_config(path: str | None = None, refresh_ms: int | None = None) -> AppConfig:
    user_config, first_run = load_user_config(path)
    ui = user_config.get("ui") or {}
    if not isinstance(ui, dict):
        raise ValueError("invalid config: ui must be an object")

    resolved = AppConfig(
        instances=build_instances(user_config),
        openclaw_cli=str(user_config.get("openclaw_cli") or ""),
        first_run=first_run,
    )
    if "refresh_ms" in ui:
        resolved.refresh_ms = int(ui["refresh_ms"])
    if refresh_ms is not None:
        resolved.refresh_ms = int(refresh_ms)
    resolved.refresh_ms = max(MIN_REFRESH_MS, resolved.refresh_ms)

    if "log_tail_lines" in ui:
        resolved.log_tail_lines = max(1, int(ui["log_tail_lines"]))
    if "log_queue_size" in ui:
        resolved.log_queue_size = max(1, int(ui["log_queue_size"]))
    if "command_timeout" in user_config:
        resolved.command_timeout = max(1.0, float(user_config["command_timeout"]))
    return resolved
