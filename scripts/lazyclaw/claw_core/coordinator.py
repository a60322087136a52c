"""Instance arena and the switch protocol.

The coordinator owns one (instance, runner, adapter, follower) slot per
configured instance plus the index of the current one. Fetches and the log pump
run as background tasks; their results reach the controller as messages through
a single bounded inbox, read with ``next_message()``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from claw_core.errors import GatewayError
from claw_core.gateway.adapter import StatusAdapter
from claw_core.gateway.follower import DEFAULT_QUEUE_SIZE, FollowSession, LogFollower
from claw_core.gateway.messages import (
    ConnectionChanged,
    HealthFetched,
    InstanceSwitched,
    LogArrived,
    Message,
    StatusFetched,
)
from claw_core.gateway.runner import DEFAULT_COMMAND_TIMEOUT, CommandRunner
from claw_core.models import Instance

logger = logging.getLogger(__name__)


@dataclass
class InstanceSlot:
    instance: Instance
    runner: CommandRunner
    adapter: StatusAdapter
    follower: LogFollower
    connected: bool | None = None
    fetches: set[asyncio.Task] = field(default_factory=set)

    @property
    def name(self) -> str:
        return self.instance.name


def build_slot(
    instance: Instance,
    default_binary: str = "",
    command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    ssh_binary: str = "ssh",
    runner_factory: Callable[..., CommandRunner] = CommandRunner,
) -> InstanceSlot:
    runner = runner_factory(instance, default_binary, command_timeout=command_timeout, ssh_binary=ssh_binary)
    return InstanceSlot(
        instance=instance,
        runner=runner,
        adapter=StatusAdapter(runner),
        follower=LogFollower(runner, queue_size=queue_size),
    )


class InstanceCoordinator:
    def __init__(self, slots: Sequence[InstanceSlot], inbox_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if not slots:
            raise ValueError("at least one instance is required")
        self.slots = list(slots)
        self.current_index = 0
        self.generation = 0
        self._session: FollowSession | None = None
        self._pump: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._inbox: asyncio.Queue[Message] = asyncio.Queue(maxsize=max(1, inbox_size))

    @classmethod
    def from_instances(
        cls,
        instances: Sequence[Instance],
        default_binary: str = "",
        command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        ssh_binary: str = "ssh",
        runner_factory: Callable[..., CommandRunner] = CommandRunner,
    ) -> "InstanceCoordinator":
        slots = [
            build_slot(instance, default_binary, command_timeout, queue_size, ssh_binary, runner_factory)
            for instance in instances
        ]
        return cls(slots, inbox_size=queue_size)

    @property
    def current(self) -> InstanceSlot:
        return self.slots[self.current_index]

    @property
    def session(self) -> FollowSession | None:
        return self._session

    def index_of(self, name: str) -> int:
        for index, slot in enumerate(self.slots):
            if slot.name == name:
                return index
        raise KeyError(name)

    async def next_message(self) -> Message:
        return await self._inbox.get()

    async def switch_to(self, index: int) -> None:
        """Make ``index`` current; a no-op when it already streams."""
        if not 0 <= index < len(self.slots):
            raise IndexError(f"instance index out of range: {index}")
        async with self._lock:
            if index == self.current_index and self._session is not None and self._session.running:
                return
            await self._activate(index)

    async def reconnect(self) -> None:
        """Restart fetches and the log stream for the current instance."""
        async with self._lock:
            await self._activate(self.current_index)

    async def close(self) -> None:
        async with self._lock:
            await self._stop_stream()
            pending = []
            for slot in self.slots:
                pending.extend(self._cancel_fetches(slot))
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    def request_status(self) -> asyncio.Task:
        slot = self.current
        return self._track(slot, self._fetch_status(slot, self.current_index, self.generation))

    def request_health(self) -> asyncio.Task:
        slot = self.current
        return self._track(slot, self._fetch_health(slot, self.current_index, self.generation))

    async def _activate(self, index: int) -> None:
        previous = self.current

        # The old stream must be fully stopped before the new one starts.
        await self._stop_stream()
        stale = self._cancel_fetches(previous)
        if stale:
            await asyncio.gather(*stale, return_exceptions=True)

        self.current_index = index
        self.generation += 1
        slot = self.current
        slot.connected = None
        logger.info("Switching to instance %s (%s)", slot.name, "ssh" if slot.runner.is_remote else "local")

        # Anything still queued belongs to an older generation.
        while not self._inbox.empty():
            self._inbox.get_nowait()
        self._inbox.put_nowait(InstanceSwitched(index, self.generation, slot.name))

        self.request_status()
        self.request_health()

        self._session = await slot.follower.start()
        self._pump = asyncio.ensure_future(self._forward_logs(self._session, index, self.generation))

    async def _stop_stream(self) -> None:
        if self._session is not None:
            await self.current.follower.stop()
            self._session = None
        if self._pump is not None:
            self._pump.cancel()
            await asyncio.gather(self._pump, return_exceptions=True)
            self._pump = None

    def _track(self, slot: InstanceSlot, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        slot.fetches.add(task)
        task.add_done_callback(slot.fetches.discard)
        return task

    @staticmethod
    def _cancel_fetches(slot: InstanceSlot) -> list[asyncio.Task]:
        tasks = [task for task in slot.fetches if not task.done()]
        for task in tasks:
            task.cancel()
        return tasks

    async def _post(self, message: Message) -> None:
        if message.generation != self.generation:
            return
        await self._inbox.put(message)

    async def _forward_logs(self, session: FollowSession, index: int, generation: int) -> None:
        async for event in session:
            await self._post(LogArrived(index, generation, event))

    async def _fetch_status(self, slot: InstanceSlot, index: int, generation: int) -> None:
        try:
            snapshot = await slot.adapter.fetch_status()
        except GatewayError as exc:
            await self._post(StatusFetched(index, generation, error=exc))
            await self._set_connected(slot, index, generation, False, str(exc))
            return
        await self._post(StatusFetched(index, generation, snapshot=snapshot))
        gateway = snapshot.gateway
        await self._set_connected(slot, index, generation, snapshot.reachable, (gateway and gateway.error) or "")

    async def _fetch_health(self, slot: InstanceSlot, index: int, generation: int) -> None:
        try:
            result = await slot.adapter.fetch_health()
        except GatewayError as exc:
            await self._post(HealthFetched(index, generation, error=exc))
            return
        await self._post(HealthFetched(index, generation, result=result))

    async def _set_connected(
        self,
        slot: InstanceSlot,
        index: int,
        generation: int,
        connected: bool,
        error: str,
    ) -> None:
        if generation != self.generation or slot.connected == connected:
            return
        slot.connected = connected
        await self._post(ConnectionChanged(index, generation, connected, error))
