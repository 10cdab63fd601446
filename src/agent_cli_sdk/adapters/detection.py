"""Locate vendor CLI executables and probe their versions."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

_VERSION = re.compile(r"(\d+\.\d+\.\d+)")
_PROBE_TIMEOUT_SECONDS = 10


@dataclass(slots=True)
class CliDetection:
    """Result of locating one vendor CLI."""

    name: str
    found: bool
    path: str | None = None
    version: str | None = None


def common_install_paths(name: str) -> tuple[str, ...]:
    home = Path.home()
    paths = [
        f"/usr/local/bin/{name}",
        f"/usr/bin/{name}",
        f"/opt/homebrew/bin/{name}",
        str(home / ".local" / "bin" / name),
        str(home / "bin" / name),
    ]
    if name == "claude":
        paths.append(str(home / ".claude" / "local" / "claude"))
    return tuple(paths)


def detect_cli(
    name: str,
    *,
    env_vars: Sequence[str] = (),
    common_paths: Sequence[str] | None = None,
) -> str | None:
    """Return the executable path for ``name`` or ``None``.

    Lookup order: the first env var pointing at an existing file, ``PATH``,
    then well-known install locations.
    """

    for env_var in env_vars:
        candidate = os.getenv(env_var, "").strip()
        if candidate and Path(candidate).is_file():
            return candidate

    resolved = shutil.which(name)
    if resolved is not None:
        return resolved

    for candidate in common_paths if common_paths is not None else common_install_paths(name):
        if Path(candidate).is_file() and os.access(candidate, os.X_OK):
            return candidate
    return None


def cli_version(executable: str) -> str | None:
    """Probe ``<executable> --version``; return the dotted version if it prints one."""

    try:
        completed = subprocess.run(  # noqa: S603
            [executable, "--version"],
            check=False,
            capture_output=True,
            text=True,
            timeout=_PROBE_TIMEOUT_SECONDS,
        )
    except (subprocess.TimeoutExpired, OSError):
        return None
    if completed.returncode != 0:
        return None
    output = completed.stdout.strip()
    match = _VERSION.search(output)
    if match is not None:
        return match.group(1)
    return output or None


def detect_and_probe(name: str, *, env_vars: Sequence[str] = ()) -> CliDetection:
    path = detect_cli(name, env_vars=env_vars)
    if path is None:
        return CliDetection(name=name, found=False)
    return CliDetection(name=name, found=True, path=path, version=cli_version(path))
