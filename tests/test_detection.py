from __future__ import annotations

import os
import stat
from pathlib import Path

import allure
import pytest

from agent_cli_sdk.adapters import detection
from agent_cli_sdk.adapters.detection import cli_version, detect_and_probe, detect_cli

pytestmark = [
    allure.epic("Vendor Adapters"),
    allure.feature("CLI Detection"),
]


def _executable(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!/bin/sh\n{body}\n", "utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


@pytest.fixture()
def empty_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    if os.name == "nt":
        pytest.skip("shell launchers are POSIX only")
    path_dir = tmp_path / "path"
    path_dir.mkdir()
    monkeypatch.setenv("PATH", str(path_dir))
    return path_dir


def test_env_var_wins_when_it_names_a_file(empty_path: Path, monkeypatch) -> None:
    configured = _executable(empty_path.parent / "custom" / "claude", "exit 0")
    _executable(empty_path / "claude", "exit 0")
    monkeypatch.setenv("MISSING_CLAUDE", str(empty_path.parent / "nope"))
    monkeypatch.setenv("CLAUDE_CLI_PATH", str(configured))

    found = detect_cli("claude", env_vars=("MISSING_CLAUDE", "CLAUDE_CLI_PATH"))

    assert found == str(configured)


def test_path_lookup_then_common_paths(empty_path: Path) -> None:
    on_path = _executable(empty_path / "codex", "exit 0")
    fallback = _executable(empty_path.parent / "opt" / "claude", "exit 0")

    assert detect_cli("codex", common_paths=()) == str(on_path)
    assert detect_cli("claude", common_paths=(str(fallback),)) == str(fallback)
    assert detect_cli("gemini", common_paths=()) is None


def test_cli_version_extracts_dotted_version(empty_path: Path) -> None:
    versioned = _executable(empty_path / "claude", 'echo "1.0.72 (Claude Code)"')
    failing = _executable(empty_path / "broken", "exit 3")

    assert cli_version(str(versioned)) == "1.0.72"
    assert cli_version(str(failing)) is None
    assert cli_version(str(empty_path / "absent")) is None


def test_detect_and_probe_reports_missing_cli(
    empty_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(detection, "common_install_paths", lambda name: ())
    _executable(empty_path / "codex", 'echo "codex-cli 0.46.0"')

    missing = detect_and_probe("claude")
    found = detect_and_probe("codex")

    assert missing.found is False
    assert missing.path is None
    assert found.found is True
    assert found.version == "0.46.0"
