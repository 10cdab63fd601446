"""Error hierarchy surfaced by adapters, sessions and the process runner."""

from __future__ import annotations

from typing import Any


class AgentSdkError(RuntimeError):
    """Base class for every error raised by this package."""


class ValidationError(AgentSdkError, ValueError):
    """Invalid prompt or option combination, raised before any process is spawned."""


class CliNotFoundError(AgentSdkError):
    """Vendor executable could not be located when the adapter was built."""

    def __init__(self, cli_name: str, message: str | None = None) -> None:
        super().__init__(
            message
            or f"{cli_name} CLI not found. Install it or set the matching *_CLI_PATH variable.",
        )
        self.cli_name = cli_name


class AuthenticationError(AgentSdkError):
    """Vendor CLI reported missing or invalid credentials."""

    def __init__(self, cli_name: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Authentication failed for {cli_name}. Please check your credentials.",
        )
        self.cli_name = cli_name


class ExecutionError(AgentSdkError):
    """Spawn or runtime failure other than a timeout."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ExecutionTimeoutError(AgentSdkError):
    """Process exceeded its configured wall-clock limit."""

    def __init__(self, timeout_seconds: float, message: str | None = None) -> None:
        super().__init__(message or f"Process exceeded timeout of {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class ParseError(AgentSdkError):
    """Structured output could not be extracted or failed validation."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class SessionError(AgentSdkError):
    """Session misuse, e.g. ``send()`` after ``abort()`` or a diverging session id."""

    def __init__(
        self,
        message: str,
        *,
        session_id: str | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        self.session_id = session_id
        self.response = response
