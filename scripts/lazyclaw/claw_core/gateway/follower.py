"""Stream `openclaw logs --follow` into a bounded, cancellable session."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from claw_core.errors import FollowUnavailable
from claw_core.gateway.parser import parse_log_line
from claw_core.gateway.runner import SSH_FAILURE_EXIT_CODE, CommandRunner, reap
from claw_core.models import LogEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256
FOLLOW_ARGS = ("logs", "--follow")
CLI_SOURCE = "openclaw-cli"
LOCAL_SOURCE = "lazyclaw"


class FollowState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPING = "stopping"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def notice(message: str, level: str = "warn") -> LogEvent:
    return LogEvent(timestamp=_now(), level=level, message=message, raw=message, source=LOCAL_SOURCE)


class FollowSession:
    """Handle for one log-streaming subprocess.

    Consumers only ever see ``get()``, iteration and ``stop()``; the process and
    queue stay private so nothing can touch them after cancellation.
    """

    def __init__(self, instance_name: str, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.instance_name = instance_name
        self.state = FollowState.STARTING
        self._queue: asyncio.Queue[LogEvent] = asyncio.Queue(maxsize=max(1, queue_size))
        self._proc: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task] = []
        self._wake = asyncio.Event()
        self._stopped = False
        self._ended = False
        self._stop_done = asyncio.Event()

    @property
    def running(self) -> bool:
        return self.state is FollowState.STREAMING

    @property
    def cancelled(self) -> bool:
        return self._stopped

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    async def get(self) -> LogEvent | None:
        """Next event, or None once the session is stopped or the stream has ended."""
        while True:
            if self._stopped:
                return None
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._ended:
                return None

            getter = asyncio.ensure_future(self._queue.get())
            waker = asyncio.ensure_future(self._wake.wait())
            try:
                done, _ = await asyncio.wait({getter, waker}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                getter.cancel()
                waker.cancel()
            if getter in done and not getter.cancelled():
                event = getter.result()
                return None if self._stopped else event
            self._wake.clear()

    def __aiter__(self) -> "FollowSession":
        return self

    async def __anext__(self) -> LogEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def stop(self) -> None:
        if self._stopped:
            await self._stop_done.wait()
            return
        self._stopped = True
        self.state = FollowState.STOPPING
        self._wake.set()

        for task in self._tasks:
            task.cancel()
        self._hang_up()
        if self._proc is not None:
            await reap(self._proc)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        while not self._queue.empty():
            self._queue.get_nowait()
        self.state = FollowState.IDLE
        self._stop_done.set()
        logger.debug("Follow session for %s stopped", self.instance_name)

    def _hang_up(self) -> None:
        # EOF on a remote stream's stdin kills the command on the host.
        stdin = self._proc.stdin if self._proc is not None else None
        if stdin is not None and not stdin.is_closing():
            stdin.close()

    async def _put(self, event: LogEvent) -> None:
        # Blocks while the consumer is behind; only a stopped session discards.
        if self._stopped:
            return
        await self._queue.put(event)

    def _end(self) -> None:
        self._ended = True
        if not self._stopped:
            self.state = FollowState.IDLE
        self._wake.set()

    def _fail(self, message: str) -> None:
        self._queue.put_nowait(notice(message))
        self._end()

    def _attach(
        self,
        proc: asyncio.subprocess.Process,
        parse: Callable[[str], LogEvent],
        remote: bool,
    ) -> None:
        self._proc = proc
        readers = [
            asyncio.ensure_future(self._read(proc.stdout, parse)),
            asyncio.ensure_future(self._read(proc.stderr, self._stderr_event)),
        ]
        monitor = asyncio.ensure_future(self._monitor(proc, readers, remote))
        self._tasks = [*readers, monitor]
        self.state = FollowState.STREAMING

    @staticmethod
    def _stderr_event(line: str) -> LogEvent:
        return LogEvent(timestamp=_now(), level="error", message=line.strip(), raw=line, source=CLI_SOURCE)

    async def _read(self, stream: asyncio.StreamReader, to_event: Callable[[str], LogEvent]) -> None:
        while True:
            try:
                chunk = await stream.readline()
            except ValueError:
                await self._put(
                    LogEvent(
                        timestamp=_now(),
                        level="error",
                        message="log line exceeded the read buffer and was skipped",
                        raw="",
                        source=LOCAL_SOURCE,
                    )
                )
                continue
            if not chunk:
                return
            line = chunk.decode(errors="replace").rstrip("\r\n")
            if not line.strip():
                continue
            await self._put(to_event(line))

    async def _monitor(
        self,
        proc: asyncio.subprocess.Process,
        readers: list[asyncio.Future],
        remote: bool,
    ) -> None:
        await asyncio.gather(*readers)
        # Output is done; release the stdin watcher before waiting on the pipes.
        self._hang_up()
        code = await proc.wait()
        if code == SSH_FAILURE_EXIT_CODE and remote:
            await self._put(notice(f"log stream unavailable: ssh exited with code {code}"))
        else:
            await self._put(notice(f"log stream ended (exit code {code})"))
        logger.info("Log stream for %s exited with code %s", self.instance_name, code)
        self._end()


class LogFollower:
    """Owns at most one streaming FollowSession for a single instance."""

    def __init__(
        self,
        runner: CommandRunner,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        parse: Callable[[str], LogEvent] = parse_log_line,
    ) -> None:
        self.runner = runner
        self.queue_size = queue_size
        self.parse = parse
        self._session: FollowSession | None = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> FollowSession | None:
        return self._session

    @property
    def state(self) -> FollowState:
        return self._session.state if self._session is not None else FollowState.IDLE

    async def start(self) -> FollowSession:
        """Stop any previous session, then launch a fresh one.

        Launch failures are reported as a single warning event on the returned
        session rather than raised.
        """
        async with self._lock:
            if self._session is not None:
                await self._session.stop()

            session = FollowSession(self.runner.instance.name, self.queue_size)
            self._session = session
            try:
                proc = await self.runner.spawn(*FOLLOW_ARGS, hangup=True)
            except OSError as exc:
                program = self.runner.ssh_binary if self.runner.is_remote else self.runner.binary
                failure = FollowUnavailable(f"log stream unavailable: cannot start {program}: {exc.strerror or exc}")
                logger.warning("%s: %s", self.runner.instance.name, failure)
                session._fail(str(failure))
                return session

            session._attach(proc, self.parse, self.runner.is_remote)
            logger.info("Following logs for %s (PID %s)", self.runner.instance.name, proc.pid)
            return session

    async def stop(self) -> None:
        async with self._lock:
            if self._session is not None:
                await self._session.stop()
