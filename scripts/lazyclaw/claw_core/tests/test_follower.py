from __future__ import annotations

import asyncio
import shutil
import tempfile
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from claw_core.gateway.follower import FollowState, LogFollower  # noqa: E402
from claw_core.gateway.runner import CommandRunner  # noqa: E402
from claw_core.models import ConnectionMode, Instance, SSHConfig  # noqa: E402
from claw_core.tests.fakes import FakeCli, FakeSsh, pid_alive  # noqa: E402

TIMEOUT = 10


class LogFollowerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.cli = FakeCli(self.tmp / "cli")
        self.followers: list[LogFollower] = []

    async def asyncTearDown(self):
        for follower in self.followers:
            await follower.stop()
        self._tmp.cleanup()

    def follower(self, queue_size: int = 16, binary: str | None = None) -> LogFollower:
        runner = CommandRunner(Instance(name="local", openclaw_cli=binary or str(self.cli.path)))
        follower = LogFollower(runner, queue_size=queue_size)
        self.followers.append(follower)
        return follower

    async def next_event(self, session):
        return await asyncio.wait_for(session.get(), TIMEOUT)

    async def test_streams_stdout_and_stderr(self):
        self.cli.set_logs(["[INFO] gateway up", "[WARN] disk low"], stderr=["auth token expired"])
        session = await self.follower().start()
        self.assertTrue(session.running)

        events = [await self.next_event(session) for _ in range(3)]
        stdout_events = [e for e in events if e.source != "openclaw-cli"]
        stderr_events = [e for e in events if e.source == "openclaw-cli"]
        self.assertEqual([(e.level, e.message) for e in stdout_events], [("info", "gateway up"), ("warn", "disk low")])
        self.assertEqual(len(stderr_events), 1)
        self.assertEqual(stderr_events[0].level, "error")
        self.assertEqual(stderr_events[0].message, "auth token expired")

    async def test_stop_terminates_process_and_silences_channel(self):
        self.cli.set_logs(["[INFO] one"])
        follower = self.follower()
        session = await follower.start()
        await self.next_event(session)
        pid = session.pid

        await follower.stop()

        self.assertEqual(session.state, FollowState.IDLE)
        self.assertFalse(session.running)
        self.assertIsNotNone(session.returncode)
        self.assertFalse(pid_alive(pid))
        self.assertIsNone(await self.next_event(session))
        self.assertEqual([e async for e in session], [])

    async def test_launch_failure_yields_single_warning(self):
        session = await self.follower(binary=str(self.tmp / "missing" / "openclaw")).start()
        event = await self.next_event(session)
        self.assertEqual(event.level, "warn")
        self.assertIn("log stream unavailable", event.message)
        self.assertIsNone(await self.next_event(session))
        self.assertFalse(session.running)

    async def test_backpressure_blocks_instead_of_dropping(self):
        lines = [f"[INFO] line {n}" for n in range(60)]
        self.cli.set_logs(lines)
        session = await self.follower(queue_size=4).start()

        await asyncio.sleep(0.5)
        self.assertLessEqual(session._queue.qsize(), 4)

        received = [await self.next_event(session) for _ in range(60)]
        self.assertEqual([e.message for e in received], [f"line {n}" for n in range(60)])

    async def test_stop_unblocks_producer_waiting_on_full_channel(self):
        self.cli.set_logs([f"[INFO] line {n}" for n in range(100)])
        follower = self.follower(queue_size=2)
        session = await follower.start()
        await asyncio.sleep(0.5)
        pid = session.pid

        await asyncio.wait_for(follower.stop(), TIMEOUT)

        self.assertFalse(pid_alive(pid))
        self.assertIsNone(await self.next_event(session))

    async def test_restart_keeps_a_single_session(self):
        self.cli.set_logs(["[INFO] hello"])
        follower = self.follower()
        first = await follower.start()
        await self.next_event(first)
        second = await follower.start()

        self.assertFalse(first.running)
        self.assertTrue(first.cancelled)
        self.assertTrue(second.running)
        self.assertIs(follower.session, second)
        await self.next_event(second)
        pids = self.cli.follow_pids()
        self.assertEqual(len(pids), 2)
        self.assertFalse(pid_alive(pids[0]))
        self.assertTrue(pid_alive(pids[1]))

    async def test_process_exit_ends_session_with_notice(self):
        self.cli.set_logs(["[INFO] last words"], exit_code=1)
        session = await self.follower().start()
        first = await self.next_event(session)
        notice = await self.next_event(session)
        self.assertEqual(first.message, "last words")
        self.assertEqual(notice.level, "warn")
        self.assertIn("exit code 1", notice.message)
        self.assertIsNone(await self.next_event(session))


class RemoteFollowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.cli = FakeCli(self.tmp / "cli")
        self.ssh = FakeSsh(self.tmp / "ssh")
        instance = Instance(
            name="remote",
            mode=ConnectionMode.SSH,
            ssh=SSHConfig(host="gw.invalid", user="ops"),
            openclaw_cli=str(self.cli.path),
        )
        self.follower = LogFollower(CommandRunner(instance, ssh_binary=str(self.ssh.path)))

    async def asyncTearDown(self):
        await self.follower.stop()
        self._tmp.cleanup()

    async def drain(self, session):
        async def collect():
            return [event async for event in session]

        return await asyncio.wait_for(collect(), TIMEOUT)

    async def test_unreachable_host_ends_session_with_one_warning(self):
        self.ssh.fail_with("ssh: connect to host gw.invalid port 22: No route to host\n")
        session = await self.follower.start()
        pid = session.pid

        events = await self.drain(session)

        warnings = [e for e in events if e.level == "warn"]
        self.assertEqual(len(warnings), 1)
        self.assertIn("log stream unavailable", warnings[0].message)
        self.assertIn("255", warnings[0].message)
        self.assertFalse(session.running)
        self.assertEqual(session.returncode, 255)
        self.assertFalse(pid_alive(pid))
        self.assertIsNone(await asyncio.wait_for(session.get(), TIMEOUT))
        self.assertEqual(self.cli.follow_pids(), [])

    @unittest.skipUnless(shutil.which("bash") and shutil.which("sh"), "needs bash and sh")
    async def test_stop_ends_the_remote_command(self):
        self.cli.set_logs(["[INFO] remote up"])
        session = await self.follower.start()
        first = await asyncio.wait_for(session.get(), TIMEOUT)
        self.assertEqual(first.message, "remote up")
        [remote_pid] = self.cli.follow_pids()

        await self.follower.stop()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + TIMEOUT
        while pid_alive(remote_pid) and loop.time() < deadline:
            await asyncio.sleep(0.05)
        self.assertFalse(pid_alive(remote_pid))
        self.assertIsNone(await asyncio.wait_for(session.get(), TIMEOUT))


if __name__ == "__main__":
    unittest.main()
