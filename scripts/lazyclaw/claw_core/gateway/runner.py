"""Run openclaw CLI commands locally or through ssh."""

from __future__ import annotations

import asyncio
import logging
import shlex
import shutil

from claw_core.errors import ConnectionFailure, ExecutionFailure
from claw_core.models import DEFAULT_CONNECT_TIMEOUT, Instance

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 30.0
SSH_FAILURE_EXIT_CODE = 255
STREAM_LIMIT = 1 << 20

# Prefixed to a remote command that must not outlive the ssh session. A
# background reader holds the session stdin and kills the exec'd command (which
# keeps the shell pid) when that stdin reaches EOF.
HANGUP_WATCHER = "exec 3<&0; (cat <&3 >/dev/null 2>&1; kill $$ 2>/dev/null) </dev/null >/dev/null 2>&1 & exec 3<&-; "

# ssh prints these itself before the remote command ever runs. They only pick
# the detail line out of an exit-255 failure; the exit code decides the kind.
CONNECTION_ERROR_MARKERS = (
    "could not resolve hostname",
    "connection refused",
    "connection timed out",
    "operation timed out",
    "no route to host",
    "network is unreachable",
    "permission denied",
    "host key verification failed",
    "connection closed by",
    "kex_exchange_identification",
)


def looks_like_connection_error(stderr: str) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in CONNECTION_ERROR_MARKERS)


def connection_detail(stderr: str) -> str:
    """The line of ssh stderr that explains a failure, skipping login-shell noise."""
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    for line in lines:
        if looks_like_connection_error(line):
            return line
    return lines[-1] if lines else ""


async def reap(proc: asyncio.subprocess.Process, grace: float = 2.0) -> None:
    """Terminate ``proc`` and wait for it; escalate to kill after ``grace`` seconds."""
    if proc.returncode is not None:
        return
    logger.debug("Terminating PID %s", proc.pid)
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=grace)
    except asyncio.TimeoutError:
        logger.debug("Killing PID %s", proc.pid)
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()


class CommandRunner:
    """Executes one openclaw invocation for a single configured instance."""

    def __init__(
        self,
        instance: Instance,
        default_binary: str = "",
        command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
        ssh_binary: str = "ssh",
    ) -> None:
        self.instance = instance
        self.binary = instance.binary(default_binary)
        self.command_timeout = command_timeout
        self.ssh_binary = ssh_binary

    @property
    def is_remote(self) -> bool:
        return self.instance.is_remote

    @property
    def host(self) -> str:
        return self.instance.ssh.destination() if self.is_remote else ""

    def build_ssh_args(self) -> list[str]:
        ssh = self.instance.ssh
        if ssh is None:
            return []
        timeout = ssh.connect_timeout if ssh.connect_timeout > 0 else DEFAULT_CONNECT_TIMEOUT
        args = [
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            f"ConnectTimeout={timeout}",
        ]
        if ssh.port > 0:
            args += ["-p", str(ssh.port)]
        if ssh.identity_file:
            args += ["-i", ssh.identity_file]
        if ssh.proxy_jump:
            args += ["-J", ssh.proxy_jump]
        args.append(ssh.destination())
        return args

    def remote_command(self, *args: str, hangup: bool = False) -> str:
        # A login shell picks up PATH tweaks (nvm, linuxbrew) that plain ssh skips.
        inner = " ".join(shlex.quote(part) for part in (self.binary, *args))
        if hangup:
            inner = HANGUP_WATCHER + "exec " + inner
        return f"bash -lc {shlex.quote(inner)}"

    def build_argv(self, *args: str, hangup: bool = False) -> list[str]:
        if self.is_remote:
            return [self.ssh_binary, *self.build_ssh_args(), self.remote_command(*args, hangup=hangup)]
        return [self.binary, *args]

    async def spawn(self, *args: str, hangup: bool = False) -> asyncio.subprocess.Process:
        """Start a command with piped stdout/stderr; raises OSError when it cannot spawn.

        With ``hangup`` a remote command is killed once its stdin closes, so
        closing ``proc.stdin`` (or losing the ssh client) ends it on the host.
        """
        hangup = hangup and self.is_remote
        argv = self.build_argv(*args, hangup=hangup)
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if hangup else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )
        logger.debug("Created PID %s for %s: %s", proc.pid, self.instance.name, " ".join(args))
        return proc

    async def run(self, *args: str) -> str:
        """Run to completion and return stripped stdout.

        Raises ExecutionFailure or ConnectionFailure; never retries.
        """
        try:
            proc = await self.spawn(*args)
        except OSError as exc:
            program = self.ssh_binary if self.is_remote else self.binary
            raise ExecutionFailure(f"failed to start {program}: {exc.strerror or exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.command_timeout)
        except asyncio.TimeoutError:
            await reap(proc, grace=0)
            # ssh enforces ConnectTimeout itself, so a hang here happened after connecting.
            prefix = "SSH command" if self.is_remote else "command"
            raise ExecutionFailure(f"{prefix} timed out after {self.command_timeout:g}s") from None
        except asyncio.CancelledError:
            await reap(proc, grace=0)
            raise

        out_text = stdout.decode(errors="replace").strip()
        err_text = stderr.decode(errors="replace").strip()
        if proc.returncode == 0:
            return out_text

        if self.is_remote:
            if proc.returncode == SSH_FAILURE_EXIT_CODE:
                detail = connection_detail(err_text) or f"ssh exited with code {proc.returncode}"
                raise ConnectionFailure(f"SSH connection failed: {detail}", host=self.host)
            if err_text:
                raise ExecutionFailure(f"SSH command failed: {err_text}", proc.returncode, err_text)
            raise ExecutionFailure(f"SSH command failed with exit code {proc.returncode}", proc.returncode)

        if err_text:
            raise ExecutionFailure(f"command failed: {err_text}", proc.returncode, err_text)
        raise ExecutionFailure(f"command failed with exit code {proc.returncode}", proc.returncode)


def cli_available(binary: str = "openclaw") -> bool:
    return shutil.which(binary) is not None


def ssh_available() -> bool:
    return shutil.which("ssh") is not None
