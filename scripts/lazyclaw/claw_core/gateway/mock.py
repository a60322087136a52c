"""Simulated openclaw CLI for demos and UI work without a gateway.

The mock still runs a real child process (the current interpreter serving
canned output), so status, health and log events travel the same runner,
follower and coordinator path as a live instance.
"""

from __future__ import annotations

import json
import sys

from claw_core.gateway.runner import DEFAULT_COMMAND_TIMEOUT, CommandRunner
from claw_core.models import Instance

MOCK_VERSION = "mock-1.0.0"
DEFAULT_LOG_INTERVAL = 2.0

MOCK_LOG_LINES = [
    ("info", "Gateway started successfully"),
    ("info", "WhatsApp channel connected"),
    ("info", "Telegram channel connected"),
    ("debug", "Heartbeat sent"),
    ("info", "New session started: user_123"),
    ("debug", "Processing incoming message"),
    ("info", "Agent 'assistant' handling request"),
    ("debug", "Tool call: web_search"),
    ("info", "Response sent to user"),
    ("warn", "Rate limit approaching for API calls"),
    ("info", "Session compaction triggered"),
    ("debug", "Cache hit for embedding lookup"),
    ("info", "Webhook received from external service"),
    ("error", "Failed to connect to backup server (retrying...)"),
    ("info", "Backup server connection restored"),
]

# argv: interval, status json, health json, log lines json, then the openclaw args.
MOCK_SCRIPT = """
import json, random, sys, time
from datetime import datetime, timezone

interval, status, health, lines = float(sys.argv[1]), sys.argv[2], sys.argv[3], json.loads(sys.argv[4])
args = sys.argv[5:]
if args[:1] == ["status"]:
    print(status)
elif args[:1] == ["health"]:
    print(health)
elif args[:2] == ["logs", "--follow"]:
    first = True
    while True:
        level, msg = lines[0] if first else random.choice(lines)
        first = False
        stamp = datetime.now(timezone.utc).isoformat()
        print(json.dumps({"time": stamp, "level": level, "msg": msg, "source": "gateway"}), flush=True)
        time.sleep(interval)
else:
    sys.stderr.write("openclaw-mock: unsupported command: " + " ".join(args) + "\\n")
    sys.exit(2)
"""


def mock_status(name: str) -> dict:
    return {
        "gateway": {
            "mode": "local",
            "url": "ws://127.0.0.1:18789",
            "reachable": True,
            "connectLatencyMs": 3,
            "self": {"host": name, "version": MOCK_VERSION, "platform": sys.platform},
            "error": None,
        },
        "sessions": {
            "count": 12,
            "defaults": {"model": "mock-model", "contextTokens": 200000},
            "recent": [
                {
                    "agentId": "assistant",
                    "key": "agent:assistant:user_123",
                    "kind": "direct",
                    "totalTokens": 5400,
                    "percentUsed": 3,
                }
            ],
        },
        "agents": {"defaultId": "assistant", "agents": [{"id": "assistant", "sessionsCount": 12}], "totalSessions": 12},
        "securityAudit": {"summary": {"critical": 0, "warn": 0, "info": 1}, "findings": []},
        "channelSummary": ["WhatsApp: linked", "Telegram: linked"],
    }


def mock_health() -> dict:
    return {
        "overall": "ok",
        "gateway": {"reachable": True, "latencyMs": 3, "version": MOCK_VERSION},
        "channels": [
            {"id": "whatsapp", "label": "WhatsApp", "status": "ok", "connected": True},
            {"id": "telegram", "label": "Telegram", "status": "ok", "connected": True},
        ],
        "services": [{"name": "gateway", "status": "running"}],
        "doctor": [{"check": "config", "status": "pass", "message": "mock config"}],
        "probeDurationMs": 45,
    }


class MockRunner(CommandRunner):
    """A CommandRunner whose openclaw is a local child serving canned output.

    Remote settings are ignored: the mock always runs on this machine.
    """

    def __init__(
        self,
        instance: Instance,
        default_binary: str = "",
        command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
        ssh_binary: str = "ssh",
        interval: float = DEFAULT_LOG_INTERVAL,
    ) -> None:
        super().__init__(Instance(name=instance.name, tags=instance.tags), default_binary, command_timeout, ssh_binary)
        self.binary = "openclaw-mock"
        self.interval = interval

    def build_argv(self, *args: str, hangup: bool = False) -> list[str]:
        return [
            sys.executable,
            "-c",
            MOCK_SCRIPT,
            str(self.interval),
            json.dumps(mock_status(self.instance.name)),
            json.dumps(mock_health()),
            json.dumps(MOCK_LOG_LINES),
            *args,
        ]
