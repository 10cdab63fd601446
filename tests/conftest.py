"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import stat
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

_AGENT_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "CLAUDE_CODE_OAUTH_TOKEN",
    "CLAUDE_CLI_PATH",
    "CODEX_CLI_PATH",
    "AGENT_CLI_SDK_CLAUDE_PATH",
    "AGENT_CLI_SDK_CODEX_PATH",
    "AGENT_CLI_SDK_TIMEOUT_SECONDS",
    "AGENT_CLI_SDK_GRACE_SECONDS",
    "AGENT_CLI_SDK_LOG_PATH",
    "AGENT_CLI_SDK_VERBOSE",
    "AGENT_CLI_SDK_SESSION_QUEUE_SIZE",
)

# Replays scripted turns: call N of the agent prints turn N (the last turn repeats).
_FAKE_AGENT_SCRIPT = '''
import json
import os
import sys
import time
from pathlib import Path

HERE = Path(__file__).resolve().parent
NAME = "__NAME__"

if sys.argv[1:] == ["--version"]:
    print(f"{NAME} 9.8.7")
    raise SystemExit(0)

calls_path = HERE / f"{NAME}_calls.jsonl"
record = {
    "argv": sys.argv[1:],
    "cwd": os.getcwd(),
    "env": {key: os.environ.get(key) for key in ("ANTHROPIC_API_KEY", "CLAUDE_CODE_OAUTH_TOKEN")},
}
with calls_path.open("a", encoding="utf-8") as handle:
    handle.write(json.dumps(record) + "\\n")
call_index = len(calls_path.read_text("utf-8").splitlines()) - 1

turns = json.loads((HERE / f"{NAME}_turns.json").read_text("utf-8"))
turn = turns[min(call_index, len(turns) - 1)]
for chunk in turn["stdout"]:
    sys.stdout.write(chunk)
    sys.stdout.flush()
if turn["stderr"]:
    sys.stderr.write(turn["stderr"])
    sys.stderr.flush()
time.sleep(turn["sleep"])
raise SystemExit(turn["exit_code"])
'''


@dataclass(slots=True)
class FakeAgent:
    """Executable stand-in for a vendor CLI plus its call log."""

    name: str
    path: Path
    turns: list[dict[str, Any]] = field(default_factory=list)

    def add_turn(
        self,
        events: list[dict[str, Any]] | None = None,
        *,
        stdout: list[str] | None = None,
        stderr: str = "",
        exit_code: int = 0,
        sleep: float = 0,
    ) -> FakeAgent:
        chunks = list(stdout or [])
        if events is not None:
            chunks.append("".join(json.dumps(event) + "\n" for event in events))
        self.turns.append(
            {"stdout": chunks, "stderr": stderr, "exit_code": exit_code, "sleep": sleep},
        )
        (self.path.parent / f"{self.name}_turns.json").write_text(json.dumps(self.turns), "utf-8")
        return self

    def calls(self) -> list[dict[str, Any]]:
        calls_path = self.path.parent / f"{self.name}_calls.jsonl"
        if not calls_path.exists():
            return []
        return [json.loads(line) for line in calls_path.read_text("utf-8").splitlines()]


@pytest.fixture(autouse=True)
def _isolated_agent_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _AGENT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def fake_agent(tmp_path: Path) -> Callable[[str], FakeAgent]:
    """Factory writing ``tmp_path/bin/<name>`` that replays scripted JSONL turns."""

    if os.name == "nt":
        pytest.skip("fake agent launchers are POSIX shell scripts")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    def _create(name: str) -> FakeAgent:
        implementation = bin_dir / f"{name}_impl.py"
        implementation.write_text(
            _FAKE_AGENT_SCRIPT.replace("__NAME__", name).strip() + "\n",
            "utf-8",
        )
        launcher = bin_dir / name
        launcher.write_text(
            f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
            "utf-8",
        )
        launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
        return FakeAgent(name=name, path=launcher)

    return _create
