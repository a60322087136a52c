from __future__ import annotations

import asyncio
import shlex
import shutil
import tempfile
import time
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from claw_core.errors import ConnectionFailure, ExecutionFailure  # noqa: E402
from claw_core.gateway.runner import CommandRunner, looks_like_connection_error  # noqa: E402
from claw_core.models import ConnectionMode, Instance, SSHConfig  # noqa: E402
from claw_core.tests.fakes import FakeCli, FakeSsh, pid_alive, write_script  # noqa: E402


def remote(**ssh) -> Instance:
    return Instance(name="prod", mode=ConnectionMode.SSH, ssh=SSHConfig(**ssh))


class ArgvTests(unittest.TestCase):
    def test_local_runs_binary_directly(self):
        runner = CommandRunner(Instance(name="local", openclaw_cli="/opt/openclaw"))
        self.assertEqual(runner.build_argv("status", "--json"), ["/opt/openclaw", "status", "--json"])

    def test_default_binary_fallbacks(self):
        self.assertEqual(CommandRunner(Instance(name="a")).binary, "openclaw")
        self.assertEqual(CommandRunner(Instance(name="a"), default_binary="/usr/bin/oc").binary, "/usr/bin/oc")
        inst = Instance(name="b", mode=ConnectionMode.SSH, ssh=SSHConfig(host="h", openclaw_cli="~/bin/oc"))
        self.assertEqual(CommandRunner(inst, default_binary="/usr/bin/oc").binary, "~/bin/oc")

    def test_ssh_connection_policy(self):
        runner = CommandRunner(remote(host="gw.example", user="ops"))
        args = runner.build_ssh_args()
        self.assertEqual(
            args,
            [
                "-o",
                "BatchMode=yes",
                "-o",
                "StrictHostKeyChecking=accept-new",
                "-o",
                "ConnectTimeout=10",
                "ops@gw.example",
            ],
        )

    def test_ssh_optional_flags(self):
        runner = CommandRunner(
            remote(
                host="root@gw.example",
                user="ops",
                port=2222,
                identity_file="/keys/id_ed25519",
                proxy_jump="bastion",
                connect_timeout=4,
            )
        )
        args = runner.build_ssh_args()
        self.assertIn("ConnectTimeout=4", args)
        self.assertEqual(args[args.index("-p") + 1], "2222")
        self.assertEqual(args[args.index("-i") + 1], "/keys/id_ed25519")
        self.assertEqual(args[args.index("-J") + 1], "bastion")
        self.assertEqual(args[-1], "root@gw.example")

    def test_remote_command_quotes_each_argument(self):
        runner = CommandRunner(remote(host="gw"))
        tricky = ["logs", "it's a \"test\"", "; rm -rf /", "$(whoami)"]
        argv = runner.build_argv(*tricky)
        self.assertEqual(argv[0], "ssh")
        outer = shlex.split(argv[-1])
        self.assertEqual(outer[:2], ["bash", "-lc"])
        self.assertEqual(shlex.split(outer[2]), ["openclaw", *tricky])

    def test_follow_command_execs_behind_hangup_watcher(self):
        runner = CommandRunner(remote(host="gw"))
        inner = shlex.split(runner.build_argv("logs", "--follow", hangup=True)[-1])[2]
        self.assertTrue(inner.endswith("exec openclaw logs --follow"))
        self.assertIn("kill $$", inner)

        local = CommandRunner(Instance(name="x"))
        self.assertEqual(local.build_argv("logs", "--follow", hangup=True), ["openclaw", "logs", "--follow"])

    def test_ssh_mode_without_host_runs_locally(self):
        runner = CommandRunner(Instance(name="x", mode=ConnectionMode.SSH, ssh=SSHConfig(host="")))
        self.assertFalse(runner.is_remote)
        self.assertEqual(runner.build_argv("status"), ["openclaw", "status"])

    def test_connection_error_markers(self):
        self.assertTrue(looks_like_connection_error("ssh: Could not resolve hostname nope: Name or service not known"))
        self.assertTrue(looks_like_connection_error("ops@gw: Permission denied (publickey)."))
        self.assertFalse(looks_like_connection_error("Error: gateway not running"))


class LocalRunTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.cli = FakeCli(self.tmp / "cli")
        self.runner = CommandRunner(Instance(name="local", openclaw_cli=str(self.cli.path)))

    async def asyncTearDown(self):
        self._tmp.cleanup()

    async def test_success_returns_stripped_stdout(self):
        self.cli.set_status("\n  {\"ok\": true}  \n")
        self.assertEqual(await self.runner.run("status", "--json"), '{"ok": true}')
        self.assertEqual(self.cli.calls(), ["status --json"])

    async def test_nonzero_exit_surfaces_stderr_verbatim(self):
        self.cli.set_status("", exit_code=1, stderr="Error: gateway config missing\n")
        with self.assertRaises(ExecutionFailure) as ctx:
            await self.runner.run("status", "--json")
        self.assertEqual(ctx.exception.stderr, "Error: gateway config missing")
        self.assertEqual(ctx.exception.exit_code, 1)
        self.assertIn("gateway config missing", str(ctx.exception))

    async def test_nonzero_exit_without_stderr_names_exit_code(self):
        self.cli.set_status("", exit_code=3)
        with self.assertRaises(ExecutionFailure) as ctx:
            await self.runner.run("status", "--json")
        self.assertIn("exit code 3", str(ctx.exception))

    async def test_missing_binary_is_execution_failure(self):
        runner = CommandRunner(Instance(name="gone", openclaw_cli=str(self.tmp / "nope" / "openclaw")))
        with self.assertRaises(ExecutionFailure):
            await runner.run("status", "--json")

    async def test_timeout_kills_process(self):
        self.cli.set_status("{}")
        self.cli.set("status.delay", "30")
        runner = CommandRunner(Instance(name="slow", openclaw_cli=str(self.cli.path)), command_timeout=0.5)
        started = time.monotonic()
        with self.assertRaises(ExecutionFailure) as ctx:
            await runner.run("status", "--json")
        self.assertLess(time.monotonic() - started, 10)
        self.assertIn("timed out", str(ctx.exception))

    async def test_cancellation_terminates_subprocess(self):
        script = write_script(
            self.tmp,
            "sleeper",
            """
            import os, sys, time
            with open(sys.argv[0] + ".pid", "w") as fh:
                fh.write(str(os.getpid()))
            time.sleep(60)
            """,
        )
        runner = CommandRunner(Instance(name="sleepy", openclaw_cli=str(script)))
        task = asyncio.ensure_future(runner.run("status"))
        pid_file = Path(str(script) + ".pid")
        for _ in range(200):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        pid = int(pid_file.read_text())
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertFalse(pid_alive(pid))


class RemoteRunTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.ssh = FakeSsh(self.tmp / "ssh")
        self.cli = FakeCli(self.tmp / "cli")

    async def asyncTearDown(self):
        self._tmp.cleanup()

    def runner(self, **ssh) -> CommandRunner:
        instance = Instance(
            name="remote",
            mode=ConnectionMode.SSH,
            ssh=SSHConfig(host="gw.invalid", **ssh),
            openclaw_cli=str(self.cli.path),
        )
        return CommandRunner(instance, ssh_binary=str(self.ssh.path))

    async def test_unreachable_host_is_connection_failure(self):
        self.ssh.fail_with("ssh: connect to host gw.invalid port 22: Connection timed out\r\n")
        started = time.monotonic()
        with self.assertRaises(ConnectionFailure) as ctx:
            await self.runner().run("status", "--json")
        self.assertLess(time.monotonic() - started, 10)
        self.assertIn("Connection timed out", str(ctx.exception))
        self.assertEqual(ctx.exception.host, "gw.invalid")
        argv = self.ssh.invocations()[0]
        self.assertIn("ConnectTimeout=10", argv)
        self.assertIn("BatchMode=yes", argv)

    async def test_rejected_auth_is_connection_failure(self):
        self.ssh.fail_with("ops@gw.invalid: Permission denied (publickey).\n")
        with self.assertRaises(ConnectionFailure):
            await self.runner(user="ops").run("status", "--json")

    @unittest.skipUnless(shutil.which("bash") and shutil.which("sh"), "needs bash and sh")
    async def test_remote_application_failure_is_execution_failure(self):
        self.cli.set_status("", exit_code=1, stderr="gateway not configured\n")
        with self.assertRaises(ExecutionFailure) as ctx:
            await self.runner().run("status", "--json")
        self.assertNotIsInstance(ctx.exception, ConnectionFailure)
        self.assertIn("gateway not configured", str(ctx.exception))

    @unittest.skipUnless(shutil.which("bash") and shutil.which("sh"), "needs bash and sh")
    async def test_remote_permission_error_from_openclaw_is_execution_failure(self):
        stderr = "Error: EACCES: permission denied, open '/home/ops/.openclaw/openclaw.json'\n"
        self.cli.set_status("", exit_code=1, stderr=stderr)
        with self.assertRaises(ExecutionFailure) as ctx:
            await self.runner().run("status", "--json")
        self.assertNotIsInstance(ctx.exception, ConnectionFailure)
        self.assertEqual(ctx.exception.exit_code, 1)
        self.assertIn("EACCES: permission denied", ctx.exception.stderr)

    @unittest.skipUnless(shutil.which("bash") and shutil.which("sh"), "needs bash and sh")
    async def test_remote_hang_after_connecting_is_execution_failure(self):
        self.cli.set_status("{}")
        self.cli.set("status.delay", "2")
        runner = self.runner()
        runner.command_timeout = 0.5
        with self.assertRaises(ExecutionFailure) as ctx:
            await runner.run("status", "--json")
        self.assertNotIsInstance(ctx.exception, ConnectionFailure)
        self.assertIn("timed out", str(ctx.exception))

    async def test_connection_failure_detail_skips_login_noise(self):
        self.ssh.fail_with(
            "WARNING conda.cli.main_config: profile is stale\n"
            "ssh: connect to host gw.invalid port 22: Connection refused\n"
        )
        with self.assertRaises(ConnectionFailure) as ctx:
            await self.runner().run("status", "--json")
        self.assertIn("Connection refused", str(ctx.exception))
        self.assertNotIn("conda", str(ctx.exception))

    @unittest.skipUnless(shutil.which("bash") and shutil.which("sh"), "needs bash and sh")
    async def test_remote_success_through_login_shell(self):
        self.cli.set_status('{"gateway": {"reachable": true}}')
        output = await self.runner().run("status", "--json")
        self.assertTrue(output.endswith('{"gateway": {"reachable": true}}'))
        self.assertEqual(self.cli.calls(), ["status --json"])


if __name__ == "__main__":
    unittest.main()
