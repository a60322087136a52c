"""Fetch and cache `status --json` / `health --json` for one instance."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from claw_core.errors import DecodeFailure, GatewayError
from claw_core.gateway.runner import CommandRunner
from claw_core.models import HealthCheckResult, StatusSnapshot

logger = logging.getLogger(__name__)


def decode_json(output: str, what: str) -> Any:
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        raise DecodeFailure(f"failed to parse {what} JSON: {exc}", raw=output) from exc


class StatusAdapter:
    """Last-known-good snapshot plus last error, per instance.

    A failed fetch records its error but never replaces the cached snapshot, so a
    transient failure does not blank the view. Only this adapter writes its cache.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner
        self._status: StatusSnapshot | None = None
        self._status_error: GatewayError | None = None
        self._fetched_at: float | None = None
        self._health: HealthCheckResult | None = None
        self._health_error: GatewayError | None = None
        self._health_raw = ""

    @property
    def instance_name(self) -> str:
        return self.runner.instance.name

    @property
    def cached_status(self) -> StatusSnapshot | None:
        return self._status

    @property
    def cached_error(self) -> GatewayError | None:
        return self._status_error

    @property
    def cached_health(self) -> HealthCheckResult | None:
        return self._health

    @property
    def health_error(self) -> GatewayError | None:
        return self._health_error

    @property
    def health_raw(self) -> str:
        return self._health_raw

    @property
    def last_fetched(self) -> float | None:
        return self._fetched_at

    def status_age(self) -> float | None:
        if self._fetched_at is None:
            return None
        return max(0.0, time.time() - self._fetched_at)

    def is_gateway_reachable(self) -> bool:
        return self._status is not None and self._status.reachable

    async def fetch_status(self) -> StatusSnapshot:
        try:
            output = await self.runner.run("status", "--json")
            data = decode_json(output, "status")
            try:
                snapshot = StatusSnapshot.from_dict(data)
            except (ValueError, TypeError, OverflowError) as exc:
                raise DecodeFailure(f"unexpected status payload: {exc}", raw=output) from exc
        except GatewayError as exc:
            self._status_error = exc
            logger.warning("%s: status fetch failed: %s", self.instance_name, exc)
            raise

        self._status = snapshot
        self._fetched_at = time.time()
        self._status_error = None
        return snapshot

    async def fetch_health(self) -> HealthCheckResult:
        try:
            output = await self.runner.run("health", "--json")
            self._health_raw = output
            data = decode_json(output, "health")
            try:
                result = HealthCheckResult.from_dict(data, raw=output)
            except (ValueError, TypeError, OverflowError) as exc:
                raise DecodeFailure(f"unexpected health payload: {exc}", raw=output) from exc
        except GatewayError as exc:
            self._health_error = exc
            logger.warning("%s: health fetch failed: %s", self.instance_name, exc)
            raise

        self._health = result
        self._health_error = None
        return result
