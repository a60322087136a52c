"""Display state, updated only by applying coordinator messages in order."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field

from claw_core.errors import GatewayError
from claw_core.gateway.messages import (
    ConnectionChanged,
    HealthFetched,
    InstanceSwitched,
    LogArrived,
    Message,
    StatusFetched,
)
from claw_core.models import HealthCheckResult, LogEvent, StatusSnapshot

DEFAULT_LOG_TAIL_LINES = 500


@dataclass
class ConnectionState:
    connected: bool = False
    last_error: str = ""
    gateway_version: str = ""


@dataclass
class DashboardState:
    instance_names: list[str]
    log_tail_lines: int = DEFAULT_LOG_TAIL_LINES
    index: int = 0
    generation: int = 0
    status: StatusSnapshot | None = None
    status_error: GatewayError | None = None
    health: HealthCheckResult | None = None
    health_error: GatewayError | None = None
    connection: ConnectionState = field(default_factory=ConnectionState)
    updated_at: float | None = None
    logs: deque[LogEvent] = field(init=False)

    def __post_init__(self) -> None:
        self.logs = deque(maxlen=max(1, self.log_tail_lines))

    @property
    def instance_name(self) -> str:
        if 0 <= self.index < len(self.instance_names):
            return self.instance_names[self.index]
        return "-"

    def apply(self, message: Message) -> bool:
        """Fold one message into the state; returns False for stale messages."""
        if isinstance(message, InstanceSwitched):
            if message.generation < self.generation:
                return False
            self._reset(message.index, message.generation)
            return True

        if message.generation != self.generation or message.index != self.index:
            return False

        if isinstance(message, StatusFetched):
            if message.error is not None:
                self.status_error = message.error
                self.connection.last_error = str(message.error)
            else:
                self.status = message.snapshot
                self.status_error = None
                self.updated_at = time.time()
                gateway = message.snapshot.gateway if message.snapshot else None
                if gateway is not None:
                    if gateway.version:
                        self.connection.gateway_version = gateway.version
                    self.connection.last_error = gateway.error or ""
        elif isinstance(message, HealthFetched):
            if message.error is not None:
                self.health_error = message.error
            else:
                self.health = message.result
                self.health_error = None
        elif isinstance(message, LogArrived):
            self.logs.append(message.event)
        elif isinstance(message, ConnectionChanged):
            self.connection.connected = message.connected
            if message.error:
                self.connection.last_error = message.error
        return True

    def _reset(self, index: int, generation: int) -> None:
        self.index = index
        self.generation = generation
        self.status = None
        self.status_error = None
        self.health = None
        self.health_error = None
        self.connection = ConnectionState()
        self.updated_at = None
        self.logs.clear()
