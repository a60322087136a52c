"""Typed failures raised by the acquisition layer."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for every failure talking to an openclaw CLI."""


class ExecutionFailure(GatewayError):
    """The command ran (or failed to spawn) and did not succeed."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ConnectionFailure(GatewayError):
    """The remote host could not be reached or rejected authentication."""

    def __init__(self, message: str, host: str = "") -> None:
        super().__init__(message)
        self.host = host


class DecodeFailure(GatewayError):
    """The command succeeded but its JSON payload could not be decoded."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class FollowUnavailable(GatewayError):
    """The log stream could not be started."""
