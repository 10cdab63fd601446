"""Subprocess runner with streamed output and graceful-then-forceful timeout."""

from __future__ import annotations

import codecs
import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import IO

from agent_cli_sdk.errors import ExecutionError, ExecutionTimeoutError
from agent_cli_sdk.models import SpawnResult

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 2.0
_READ_SIZE = 64 * 1024
_POSIX = os.name != "nt"

ChunkCallback = Callable[[str], None]


class _DeliveryGate:
    """Serializes callback delivery with the timeout declaration.

    Once :meth:`close` returns, no callback is running and none will start.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._closed = False

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def deliver(self, callback: ChunkCallback, text: str) -> None:
        with self._lock:
            if not self._closed:
                callback(text)


class _StreamPump(threading.Thread):
    """Drain one pipe, decode incrementally and forward chunks as they arrive."""

    def __init__(
        self,
        stream: IO[bytes],
        callback: ChunkCallback | None,
        gate: _DeliveryGate,
        *,
        name: str,
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._stream = stream
        self._callback = callback
        self._gate = gate
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._parts: list[str] = []
        self.callback_error: BaseException | None = None

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def run(self) -> None:
        try:
            while True:
                data = self._stream.read1(_READ_SIZE)  # type: ignore[attr-defined]
                if not data:
                    break
                self._emit(self._decoder.decode(data))
            self._emit(self._decoder.decode(b"", final=True))
        except (OSError, ValueError):
            # Pipe closed underneath us after a kill.
            logger.debug("Stream %s closed while reading", self.name, exc_info=True)
        finally:
            self._stream.close()

    def _emit(self, text: str) -> None:
        if not text:
            return
        self._parts.append(text)
        if self._callback is None or self.callback_error is not None:
            return
        try:
            self._gate.deliver(self._callback, text)
        except Exception as error:  # noqa: BLE001
            # Keep draining so the child never blocks on a full pipe.
            logger.exception("Output callback failed on %s", self.name)
            self.callback_error = error


class ProcessRunner:
    """Spawn one executable and resolve to a :class:`SpawnResult`.

    On POSIX the child leads its own process group, so a timeout also stops
    helpers it spawned that still hold the output pipes.
    """

    def __init__(self, *, grace_seconds: float = DEFAULT_GRACE_SECONDS) -> None:
        self.grace_seconds = grace_seconds

    def spawn(  # noqa: PLR0913
        self,
        command: str,
        *,
        args: Sequence[str] = (),
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
        on_stdout: ChunkCallback | None = None,
        on_stderr: ChunkCallback | None = None,
    ) -> SpawnResult:
        """Run ``command`` with ``args`` and stream its output to the callbacks.

        ``timeout_seconds`` bounds both the process and the draining of its
        pipes. Raises :class:`ExecutionTimeoutError` when it elapses (the
        process group is terminated, then killed after the grace window) and
        :class:`ExecutionError` when the process cannot be started.
        """

        run_args = [command, *args]
        logger.debug("Spawning %s with %d argument(s) in %s", command, len(args), cwd or ".")
        started = time.monotonic()
        deadline = started + timeout_seconds if timeout_seconds is not None else None
        try:
            process = subprocess.Popen(  # noqa: S603
                run_args,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=_POSIX,
            )
        except FileNotFoundError as error:
            raise ExecutionError(
                f"Failed to spawn process: command not found: {command}",
            ) from error
        except PermissionError as error:
            raise ExecutionError(
                f"Failed to spawn process: permission denied: {command}",
            ) from error
        except OSError as error:
            raise ExecutionError(f"Failed to spawn process: {error}") from error

        gate = _DeliveryGate()
        stdout_pump = _StreamPump(
            process.stdout,  # type: ignore[arg-type]
            on_stdout,
            gate,
            name=f"{Path(command).name}-stdout",
        )
        stderr_pump = _StreamPump(
            process.stderr,  # type: ignore[arg-type]
            on_stderr,
            gate,
            name=f"{Path(command).name}-stderr",
        )
        pumps = (stdout_pump, stderr_pump)
        for pump in pumps:
            pump.start()

        try:
            process.wait(timeout=_remaining(deadline))
        except subprocess.TimeoutExpired:
            self._abandon(process, pumps, gate)
            logger.warning("Process %s exceeded timeout of %ss", command, timeout_seconds)
            raise ExecutionTimeoutError(timeout_seconds) from None  # type: ignore[arg-type]

        for pump in pumps:
            pump.join(timeout=_remaining(deadline))
        if any(pump.is_alive() for pump in pumps):
            # The child exited but a descendant still holds its output pipes.
            self._abandon(process, pumps, gate)
            logger.warning(
                "Output of %s still open after timeout of %ss", command, timeout_seconds,
            )
            raise ExecutionTimeoutError(timeout_seconds)  # type: ignore[arg-type]
        duration_ms = int((time.monotonic() - started) * 1000)

        for pump in pumps:
            if pump.callback_error is not None:
                raise pump.callback_error

        returncode = process.returncode
        # Killed by a signal: there is no exit code to report.
        exit_code = returncode if returncode is not None and returncode >= 0 else 1
        logger.debug("Process %s exited with %s after %dms", command, exit_code, duration_ms)
        return SpawnResult(
            stdout=stdout_pump.text,
            stderr=stderr_pump.text,
            exit_code=exit_code,
            duration_ms=duration_ms,
        )

    def _abandon(
        self,
        process: subprocess.Popen[bytes],
        pumps: tuple[_StreamPump, ...],
        gate: _DeliveryGate,
    ) -> None:
        gate.close()
        _terminate_process(process, grace_seconds=self.grace_seconds)
        for pump in pumps:
            pump.join(timeout=self.grace_seconds)
        if any(pump.is_alive() for pump in pumps):
            _signal_group(process, kill=True)
            for pump in pumps:
                pump.join(timeout=self.grace_seconds)


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _signal_group(process: subprocess.Popen[bytes], *, kill: bool) -> None:
    if not _POSIX:
        if process.poll() is None:
            try:
                if kill:
                    process.kill()
                else:
                    process.terminate()
            except OSError:
                logger.debug("Could not signal process %s", process.pid, exc_info=True)
        return
    try:
        os.killpg(process.pid, signal.SIGKILL if kill else signal.SIGTERM)
    except ProcessLookupError:
        return
    except OSError:
        logger.debug("Could not signal process group %s", process.pid, exc_info=True)


def _terminate_process(process: subprocess.Popen[bytes], *, grace_seconds: float) -> None:
    _signal_group(process, kill=False)
    try:
        process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        _signal_group(process, kill=True)
        try:
            process.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", process.pid)
