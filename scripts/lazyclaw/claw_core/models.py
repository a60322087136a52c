"""Shared model contracts for instances, snapshots, log events and panels."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_BINARY = "openclaw"

LOG_LEVELS = ("debug", "info", "warn", "error")


class ConnectionMode(str, Enum):
    LOCAL = "local"
    SSH = "ssh"

    @classmethod
    def parse(cls, value: str | None) -> "ConnectionMode":
        text = (value or "local").strip().lower()
        if text in ("ssh", "remote"):
            return cls.SSH
        if text == "local":
            return cls.LOCAL
        raise ValueError(f"unknown connection mode: {value}")


@dataclass(frozen=True)
class SSHConfig:
    host: str
    port: int = 0
    user: str = ""
    identity_file: str = ""
    proxy_jump: str = ""
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    openclaw_cli: str = ""

    def destination(self) -> str:
        if self.user and "@" not in self.host:
            return f"{self.user}@{self.host}"
        return self.host


@dataclass(frozen=True)
class Instance:
    name: str
    mode: ConnectionMode = ConnectionMode.LOCAL
    ssh: SSHConfig | None = None
    openclaw_cli: str = ""
    tags: tuple[str, ...] = ()

    @property
    def is_remote(self) -> bool:
        return self.mode is ConnectionMode.SSH and self.ssh is not None and bool(self.ssh.host)

    def binary(self, fallback: str = "") -> str:
        if self.openclaw_cli:
            return self.openclaw_cli
        if self.ssh is not None and self.ssh.openclaw_cli:
            return self.ssh.openclaw_cli
        return fallback or DEFAULT_BINARY


@dataclass(frozen=True)
class LogEvent:
    timestamp: datetime
    level: str
    message: str
    raw: str
    source: str = "gateway"


# ---------------------------------------------------------------------------
# `openclaw status --json` / `openclaw health --json` payloads
# ---------------------------------------------------------------------------


def _obj(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name}: expected object, got {type(value).__name__}")
    return value


def _list(value: Any, name: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name}: expected array, got {type(value).__name__}")
    return value


def _int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except OverflowError as exc:
            raise ValueError(f"number out of range: {value}") from exc
    raise ValueError(f"expected number, got {type(value).__name__}")


@dataclass
class GatewayInfo:
    mode: str = ""
    url: str = ""
    reachable: bool = False
    misconfigured: bool = False
    connect_latency_ms: int = 0
    host: str = ""
    ip: str = ""
    version: str = ""
    platform: str = ""
    error: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "GatewayInfo":
        data = _obj(data, "gateway")
        me = _obj(data.get("self"), "gateway.self")
        error = data.get("error")
        return cls(
            mode=str(data.get("mode") or ""),
            url=str(data.get("url") or ""),
            reachable=bool(data.get("reachable")),
            misconfigured=bool(data.get("misconfigured")),
            connect_latency_ms=_int(data.get("connectLatencyMs")),
            host=str(me.get("host") or ""),
            ip=str(me.get("ip") or ""),
            version=str(me.get("version") or ""),
            platform=str(me.get("platform") or ""),
            error=str(error) if error else None,
        )


@dataclass
class SessionInfo:
    agent_id: str
    key: str
    kind: str = ""
    model: str = ""
    age_ms: int = 0
    total_tokens: int = 0
    percent_used: int = 0
    aborted_last_run: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "SessionInfo":
        data = _obj(data, "session")
        return cls(
            agent_id=str(data.get("agentId") or ""),
            key=str(data.get("key") or ""),
            kind=str(data.get("kind") or ""),
            model=str(data.get("model") or ""),
            age_ms=_int(data.get("age")),
            total_tokens=_int(data.get("totalTokens")),
            percent_used=_int(data.get("percentUsed")),
            aborted_last_run=bool(data.get("abortedLastRun")),
        )


@dataclass
class SessionsInfo:
    count: int = 0
    default_model: str = ""
    context_tokens: int = 0
    recent: list[SessionInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "SessionsInfo":
        data = _obj(data, "sessions")
        defaults = _obj(data.get("defaults"), "sessions.defaults")
        return cls(
            count=_int(data.get("count")),
            default_model=str(defaults.get("model") or ""),
            context_tokens=_int(defaults.get("contextTokens")),
            recent=[SessionInfo.from_dict(s) for s in _list(data.get("recent"), "sessions.recent")],
        )


@dataclass
class AgentInfo:
    id: str
    sessions_count: int = 0
    bootstrap_pending: bool = False
    last_active_age_ms: int = 0


@dataclass
class AgentsInfo:
    default_id: str = ""
    total_sessions: int = 0
    bootstrap_pending_count: int = 0
    agents: list[AgentInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "AgentsInfo":
        data = _obj(data, "agents")
        agents = []
        for item in _list(data.get("agents"), "agents.agents"):
            item = _obj(item, "agent")
            agents.append(
                AgentInfo(
                    id=str(item.get("id") or ""),
                    sessions_count=_int(item.get("sessionsCount")),
                    bootstrap_pending=bool(item.get("bootstrapPending")),
                    last_active_age_ms=_int(item.get("lastActiveAgeMs")),
                )
            )
        return cls(
            default_id=str(data.get("defaultId") or ""),
            total_sessions=_int(data.get("totalSessions")),
            bootstrap_pending_count=_int(data.get("bootstrapPendingCount")),
            agents=agents,
        )


@dataclass
class AuditFinding:
    check_id: str
    severity: str
    title: str
    detail: str = ""
    remediation: str = ""


@dataclass
class SecurityAudit:
    critical: int = 0
    warn: int = 0
    info: int = 0
    findings: list[AuditFinding] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "SecurityAudit":
        data = _obj(data, "securityAudit")
        summary = _obj(data.get("summary"), "securityAudit.summary")
        findings = []
        for item in _list(data.get("findings"), "securityAudit.findings"):
            item = _obj(item, "finding")
            findings.append(
                AuditFinding(
                    check_id=str(item.get("checkId") or ""),
                    severity=str(item.get("severity") or "info"),
                    title=str(item.get("title") or ""),
                    detail=str(item.get("detail") or ""),
                    remediation=str(item.get("remediation") or ""),
                )
            )
        return cls(
            critical=_int(summary.get("critical")),
            warn=_int(summary.get("warn")),
            info=_int(summary.get("info")),
            findings=findings,
        )


@dataclass
class ServiceInfo:
    label: str = ""
    installed: bool = False
    loaded_text: str = ""
    runtime_short: str = ""

    @classmethod
    def from_dict(cls, data: Any, name: str) -> "ServiceInfo":
        data = _obj(data, name)
        return cls(
            label=str(data.get("label") or ""),
            installed=bool(data.get("installed")),
            loaded_text=str(data.get("loadedText") or ""),
            runtime_short=str(data.get("runtimeShort") or ""),
        )


@dataclass
class StatusSnapshot:
    """Decoded `openclaw status --json` payload.

    Only the fields the dashboard reads are typed; everything else stays
    reachable through ``raw``.
    """

    raw: dict[str, Any]
    gateway: GatewayInfo | None = None
    sessions: SessionsInfo = field(default_factory=SessionsInfo)
    agents: AgentsInfo = field(default_factory=AgentsInfo)
    security_audit: SecurityAudit | None = None
    channel_summary: list[str] = field(default_factory=list)
    gateway_service: ServiceInfo | None = None
    node_service: ServiceInfo | None = None
    os_label: str = ""
    update_channel: str = ""
    latest_version: str = ""
    memory_backend: str = ""
    memory_files: int = 0
    memory_chunks: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "StatusSnapshot":
        if not isinstance(data, dict):
            raise ValueError(f"status: expected object, got {type(data).__name__}")
        os_info = _obj(data.get("os"), "os")
        update = _obj(data.get("update"), "update")
        registry = _obj(update.get("registry"), "update.registry")
        memory = _obj(data.get("memory"), "memory")
        return cls(
            raw=data,
            gateway=GatewayInfo.from_dict(data["gateway"]) if data.get("gateway") is not None else None,
            sessions=SessionsInfo.from_dict(data.get("sessions")),
            agents=AgentsInfo.from_dict(data.get("agents")),
            security_audit=(
                SecurityAudit.from_dict(data["securityAudit"])
                if data.get("securityAudit") is not None
                else None
            ),
            channel_summary=[str(line) for line in _list(data.get("channelSummary"), "channelSummary")],
            gateway_service=(
                ServiceInfo.from_dict(data["gatewayService"], "gatewayService")
                if data.get("gatewayService") is not None
                else None
            ),
            node_service=(
                ServiceInfo.from_dict(data["nodeService"], "nodeService")
                if data.get("nodeService") is not None
                else None
            ),
            os_label=str(os_info.get("label") or os_info.get("platform") or ""),
            update_channel=str(data.get("updateChannel") or ""),
            latest_version=str(registry.get("latestVersion") or ""),
            memory_backend=str(memory.get("backend") or ""),
            memory_files=_int(memory.get("files")),
            memory_chunks=_int(memory.get("chunks")),
        )

    @property
    def reachable(self) -> bool:
        return self.gateway is not None and self.gateway.reachable


@dataclass
class HealthItem:
    name: str
    status: str
    detail: str = ""


@dataclass
class HealthCheckResult:
    """Decoded `openclaw health --json` payload; ``raw`` keeps the response text."""

    overall: str
    raw: str = ""
    ts: int = 0
    gateway_reachable: bool = False
    gateway_latency_ms: int = 0
    gateway_version: str = ""
    gateway_error: str = ""
    channels: list[HealthItem] = field(default_factory=list)
    services: list[HealthItem] = field(default_factory=list)
    doctor: list[HealthItem] = field(default_factory=list)
    probe_duration_ms: int = 0

    @classmethod
    def from_dict(cls, data: Any, raw: str = "") -> "HealthCheckResult":
        if not isinstance(data, dict):
            raise ValueError(f"health: expected object, got {type(data).__name__}")
        gateway = _obj(data.get("gateway"), "gateway")

        channels = []
        for item in _list(data.get("channels"), "channels"):
            item = _obj(item, "channel")
            status = str(item.get("status") or ("ok" if item.get("connected") else "unknown"))
            channels.append(
                HealthItem(
                    name=str(item.get("label") or item.get("id") or "?"),
                    status=status,
                    detail=str(item.get("error") or ""),
                )
            )
        services = []
        for item in _list(data.get("services"), "services"):
            item = _obj(item, "service")
            services.append(
                HealthItem(
                    name=str(item.get("name") or "?"),
                    status=str(item.get("status") or "unknown"),
                    detail=str(item.get("details") or ""),
                )
            )
        doctor = []
        for item in _list(data.get("doctor"), "doctor"):
            item = _obj(item, "doctor item")
            doctor.append(
                HealthItem(
                    name=str(item.get("check") or "?"),
                    status=str(item.get("status") or "unknown"),
                    detail=str(item.get("message") or ""),
                )
            )

        return cls(
            overall=str(data.get("overall") or "unknown").lower(),
            raw=raw,
            ts=_int(data.get("ts")),
            gateway_reachable=bool(gateway.get("reachable")),
            gateway_latency_ms=_int(gateway.get("latencyMs")),
            gateway_version=str(gateway.get("version") or ""),
            gateway_error=str(gateway.get("error") or ""),
            channels=channels,
            services=services,
            doctor=doctor,
            probe_duration_ms=_int(data.get("probeDurationMs")),
        )


# ---------------------------------------------------------------------------
# Panel contract between collectors and renderers
# ---------------------------------------------------------------------------


@dataclass
class PanelData:
    key: str
    title: str
    status: str = "ok"
    items: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "status": self.status,
            "items": self.items,
            "meta": self.meta,
            "errors": self.errors,
        }
