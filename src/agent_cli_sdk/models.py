"""Domain models for agent execution requests, results and sessions."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from agent_cli_sdk.events import StreamEvent


class ExecutionStatus(str, Enum):
    """Terminal status of one execution."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


@runtime_checkable
class ResponseValidator(Protocol):
    """Schema collaborator used to validate structured output."""

    def safe_parse(self, value: Any) -> Any:
        """Return an object (or mapping) exposing ``success``, ``data`` and ``error``."""


@dataclass(slots=True)
class OutputData:
    """Per-chunk streaming bundle handed to ``on_output``."""

    raw: str
    events: list[StreamEvent]
    text: str | None
    accumulated: str


OutputCallback = Callable[[OutputData], None]
EventCallback = Callable[[StreamEvent], None]


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    """Configuration of one call. ``None`` means "not set" so layers can be merged."""

    model: str | None = None
    session_id: str | None = None
    resume: bool | None = None
    continue_session: bool | None = None
    permission_mode: str | None = None
    dangerously_skip_permissions: bool | None = None
    streaming: bool | None = None
    verbose: bool | None = None
    allowed_tools: tuple[str, ...] | None = None
    disallowed_tools: tuple[str, ...] | None = None
    images: tuple[str, ...] | None = None
    timeout_seconds: float | None = None
    log_path: Path | None = None
    response_schema: ResponseValidator | bool | None = None
    working_dir: Path | None = None
    on_output: OutputCallback | None = None
    on_event: EventCallback | None = None
    # Codex-only switches; ignored by the Claude adapter.
    sandbox: str | None = None
    full_auto: bool | None = None
    skip_git_repo_check: bool | None = None
    search: bool | None = None
    profile: str | None = None
    config_overrides: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        for name in ("allowed_tools", "disallowed_tools", "images"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(str(item) for item in value))
        for name in ("log_path", "working_dir"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                object.__setattr__(self, name, Path(value))

    def merged_with(self, override: ExecutionOptions | None) -> ExecutionOptions:
        """Return a copy where every field set on ``override`` wins."""

        if override is None:
            return self
        changes = {
            item.name: getattr(override, item.name)
            for item in fields(override)
            if getattr(override, item.name) is not None
        }
        return replace(self, **changes)

    def with_changes(self, **changes: Any) -> ExecutionOptions:
        return replace(self, **changes)

    def to_log_dict(self) -> dict[str, Any]:
        """JSON-friendly view used by the audit sink; callbacks become flags."""

        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            if item.name in {"on_output", "on_event"}:
                payload[item.name] = True
            elif item.name == "response_schema":
                payload[item.name] = value if isinstance(value, bool) else type(value).__name__
            elif isinstance(value, Path):
                payload[item.name] = str(value)
            elif isinstance(value, tuple):
                payload[item.name] = list(value)
            elif isinstance(value, Mapping):
                payload[item.name] = dict(value)
            else:
                payload[item.name] = value
        return payload


@dataclass(slots=True)
class SpawnResult:
    """Outcome of one OS process."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int


@dataclass(slots=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(slots=True)
class ModelUsage:
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float | None = None


@dataclass(slots=True)
class ResponseError:
    code: str
    message: str
    details: dict[str, Any] | None = None


@dataclass(slots=True)
class RawOutput:
    stdout: str
    stderr: str


@dataclass(slots=True)
class ExecutionMetadata:
    model: str | None = None
    tools_used: list[str] = field(default_factory=list)
    files_modified: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ExecutionResponse:
    """Final, terminal result of one execution."""

    output: Any
    session_id: str | None
    status: ExecutionStatus
    exit_code: int
    duration_ms: int
    usage: TokenUsage | None = None
    model_usage: dict[str, ModelUsage] | None = None
    total_cost_usd: float | None = None
    raw: RawOutput | None = None
    error: ResponseError | None = None
    metadata: ExecutionMetadata = field(default_factory=ExecutionMetadata)

    @property
    def data(self) -> Any:
        return self.output

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def to_log_dict(self) -> dict[str, Any]:
        """Serialize for ``output.json``."""

        return {
            "output": self.output,
            "session_id": self.session_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "usage": _dataclass_dict(self.usage),
            "model_usage": (
                {key: _dataclass_dict(value) for key, value in self.model_usage.items()}
                if self.model_usage
                else None
            ),
            "total_cost_usd": self.total_cost_usd,
            "error": _dataclass_dict(self.error),
            "metadata": _dataclass_dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class AdapterCapabilities:
    streaming: bool
    session_management: bool
    tool_calling: bool
    multi_modal: bool


@dataclass(slots=True)
class SessionInfo:
    """Point-in-time view of a registered session."""

    session_id: str
    message_count: int
    started_at: float
    last_message_at: float | None
    adapter: str


def _dataclass_dict(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    return {item.name: getattr(value, item.name) for item in fields(value)}
