"""openclaw CLI acquisition: command runner, log follower, status adapter."""

from __future__ import annotations

from claw_core.gateway.adapter import StatusAdapter
from claw_core.gateway.follower import FollowSession, FollowState, LogFollower
from claw_core.gateway.mock import MockRunner
from claw_core.gateway.parser import parse_log_line
from claw_core.gateway.runner import CommandRunner

__all__ = [
    "CommandRunner",
    "FollowSession",
    "FollowState",
    "LogFollower",
    "MockRunner",
    "StatusAdapter",
    "parse_log_line",
]
