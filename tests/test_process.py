from __future__ import annotations

import logging
import os
import subprocess
import sys
import time

import allure
import pytest

from agent_cli_sdk import process as process_module
from agent_cli_sdk.errors import ExecutionError, ExecutionTimeoutError
from agent_cli_sdk.process import ProcessRunner

pytestmark = [
    allure.epic("Process Orchestration"),
    allure.feature("Process Runner"),
]


def _python(code: str) -> list[str]:
    return ["-c", code]


def test_spawn_streams_stdout_chunks_and_buffers_both_streams() -> None:
    chunks: list[str] = []
    errors: list[str] = []

    result = ProcessRunner().spawn(
        sys.executable,
        args=_python(
            "import sys\n"
            "sys.stdout.write('first\\n'); sys.stdout.flush()\n"
            "sys.stderr.write('warn\\n'); sys.stderr.flush()\n"
            "sys.stdout.write('second\\n')\n",
        ),
        on_stdout=chunks.append,
        on_stderr=errors.append,
    )

    assert result.exit_code == 0
    assert result.stdout == "first\nsecond\n"
    assert result.stderr == "warn\n"
    assert "".join(chunks) == result.stdout
    assert "".join(errors) == result.stderr
    assert result.duration_ms >= 0


def test_spawn_reports_nonzero_exit_code() -> None:
    result = ProcessRunner().spawn(sys.executable, args=_python("raise SystemExit(3)"))

    assert result.exit_code == 3
    assert result.stdout == ""


def test_spawn_decodes_multibyte_character_split_across_writes() -> None:
    code = (
        "import sys, time\n"
        "data = 'h\\u00e9llo\\n'.encode('utf-8')\n"
        "sys.stdout.buffer.write(data[:2]); sys.stdout.buffer.flush(); time.sleep(0.05)\n"
        "sys.stdout.buffer.write(data[2:]); sys.stdout.buffer.flush()\n"
    )
    chunks: list[str] = []

    result = ProcessRunner().spawn(sys.executable, args=_python(code), on_stdout=chunks.append)

    assert result.stdout == "héllo\n"
    assert "�" not in "".join(chunks)


def test_spawn_passes_cwd_and_env(tmp_path) -> None:
    result = ProcessRunner().spawn(
        sys.executable,
        args=_python("import os; print(os.getcwd()); print(os.environ['AGENT_MARKER'])"),
        cwd=tmp_path,
        env={"AGENT_MARKER": "marker-value", "PATH": "/usr/bin:/bin"},
    )

    lines = result.stdout.splitlines()
    assert lines[0] == str(tmp_path.resolve())
    assert lines[1] == "marker-value"


def test_spawn_timeout_terminates_process_and_raises() -> None:
    started = time.monotonic()

    with pytest.raises(ExecutionTimeoutError) as error_info:
        ProcessRunner().spawn(
            sys.executable,
            args=_python("import time; time.sleep(30)"),
            timeout_seconds=0.5,
        )

    assert time.monotonic() - started < 10
    assert error_info.value.timeout_seconds == 0.5
    assert "0.5s" in str(error_info.value)


def test_spawn_timeout_kills_process_that_ignores_terminate() -> None:
    code = (
        "import signal, sys, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "time.sleep(30)\n"
    )
    started = time.monotonic()

    with pytest.raises(ExecutionTimeoutError):
        ProcessRunner(grace_seconds=0.5).spawn(
            sys.executable,
            args=_python(code),
            timeout_seconds=1,
        )

    assert time.monotonic() - started < 10


def test_spawn_missing_binary_raises_execution_error(tmp_path) -> None:
    missing = tmp_path / "no-such-agent"

    with pytest.raises(ExecutionError) as error_info:
        ProcessRunner().spawn(str(missing))

    assert "command not found" in str(error_info.value)
    assert isinstance(error_info.value.__cause__, FileNotFoundError)


def test_spawn_reraises_callback_error_after_draining() -> None:
    def explode(_chunk: str) -> None:
        raise RuntimeError("callback failed")

    with pytest.raises(RuntimeError, match="callback failed"):
        ProcessRunner().spawn(
            sys.executable,
            args=_python("print('x' * 200000)"),
            on_stdout=explode,
        )


@pytest.mark.skipif(os.name == "nt", reason="process groups are POSIX only")
def test_spawn_timeout_bounds_output_held_by_grandchild() -> None:
    code = (
        "import subprocess, sys\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
        "print('parent done', flush=True)\n"
    )
    chunks: list[str] = []
    started = time.monotonic()

    with pytest.raises(ExecutionTimeoutError):
        ProcessRunner(grace_seconds=0.5).spawn(
            sys.executable,
            args=_python(code),
            timeout_seconds=1,
            on_stdout=chunks.append,
        )

    assert time.monotonic() - started < 5
    assert "".join(chunks) == "parent done\n"


def test_no_stdout_callback_fires_after_timeout() -> None:
    code = (
        "import time\n"
        "while True:\n"
        "    print('tick', flush=True)\n"
        "    time.sleep(0.01)\n"
    )
    chunks: list[str] = []

    with pytest.raises(ExecutionTimeoutError):
        ProcessRunner(grace_seconds=0.5).spawn(
            sys.executable,
            args=_python(code),
            timeout_seconds=0.5,
            on_stdout=chunks.append,
        )
    delivered = len(chunks)
    time.sleep(0.3)

    assert delivered > 0
    assert len(chunks) == delivered


class _UnkillableProcess:
    pid = 424242

    def wait(self, timeout: float | None = None) -> int:
        raise subprocess.TimeoutExpired("agent", timeout)


def test_terminate_logs_process_that_survives_kill(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    signals: list[bool] = []
    monkeypatch.setattr(
        process_module,
        "_signal_group",
        lambda process, *, kill: signals.append(kill),
    )

    with caplog.at_level(logging.WARNING, logger="agent_cli_sdk.process"):
        process_module._terminate_process(_UnkillableProcess(), grace_seconds=0.01)

    assert signals == [False, True]
    assert "did not exit after kill" in caplog.text
