"""Runtime configuration for adapters, sessions and the command line."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from agent_cli_sdk.process import DEFAULT_GRACE_SECONDS


@dataclass(slots=True)
class CliPathSettings:
    """Explicit vendor executable locations; ``None`` means auto-detect."""

    claude_path: str | None = None
    codex_path: str | None = None


@dataclass(slots=True)
class ExecutionSettings:
    """Client-wide execution defaults."""

    timeout_seconds: float | None = None
    grace_seconds: float = DEFAULT_GRACE_SECONDS
    log_path: Path | None = None
    verbose: bool = False


@dataclass(slots=True)
class SessionSettings:
    """Session channel sizing."""

    queue_size: int = 256


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    cli: CliPathSettings = field(default_factory=CliPathSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    session: SessionSettings = field(default_factory=SessionSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suited to local use."""

        log_path = os.getenv("AGENT_CLI_SDK_LOG_PATH", "").strip()
        return cls(
            cli=CliPathSettings(
                claude_path=_env_str("AGENT_CLI_SDK_CLAUDE_PATH", "CLAUDE_CLI_PATH"),
                codex_path=_env_str("AGENT_CLI_SDK_CODEX_PATH", "CODEX_CLI_PATH"),
            ),
            execution=ExecutionSettings(
                timeout_seconds=_env_float("AGENT_CLI_SDK_TIMEOUT_SECONDS"),
                grace_seconds=_env_float("AGENT_CLI_SDK_GRACE_SECONDS") or DEFAULT_GRACE_SECONDS,
                log_path=Path(log_path) if log_path else None,
                verbose=_env_bool("AGENT_CLI_SDK_VERBOSE", default=False),
            ),
            session=SessionSettings(
                queue_size=int(os.getenv("AGENT_CLI_SDK_SESSION_QUEUE_SIZE", "256")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error on out-of-range values."""

        if self.execution.timeout_seconds is not None and self.execution.timeout_seconds <= 0:
            raise ValueError("AGENT_CLI_SDK_TIMEOUT_SECONDS must be > 0.")
        if self.execution.grace_seconds <= 0:
            raise ValueError("AGENT_CLI_SDK_GRACE_SECONDS must be > 0.")
        if self.session.queue_size <= 0:
            raise ValueError("AGENT_CLI_SDK_SESSION_QUEUE_SIZE must be a positive integer.")


def _env_str(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def _env_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {raw!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
