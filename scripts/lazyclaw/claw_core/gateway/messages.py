"""Notifications delivered from acquisition tasks to the controller.

Every message names the instance index and the switch generation it belongs to,
so results that arrive after a switch can be recognised and dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from claw_core.errors import GatewayError
from claw_core.models import HealthCheckResult, LogEvent, StatusSnapshot


@dataclass(frozen=True)
class InstanceSwitched:
    index: int
    generation: int
    name: str


@dataclass(frozen=True)
class StatusFetched:
    index: int
    generation: int
    snapshot: StatusSnapshot | None = None
    error: GatewayError | None = None


@dataclass(frozen=True)
class HealthFetched:
    index: int
    generation: int
    result: HealthCheckResult | None = None
    error: GatewayError | None = None


@dataclass(frozen=True)
class LogArrived:
    index: int
    generation: int
    event: LogEvent


@dataclass(frozen=True)
class ConnectionChanged:
    index: int
    generation: int
    connected: bool
    error: str = ""


Message = Union[InstanceSwitched, StatusFetched, HealthFetched, LogArrived, ConnectionChanged]
