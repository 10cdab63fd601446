"""Drive Claude Code and Codex command-line agents through one streaming API."""

from agent_cli_sdk.adapters import (
    AdapterSession,
    BaseAdapter,
    ClaudeAdapter,
    CodexAdapter,
    create_adapter,
    list_adapter_keys,
    register_adapter,
)
from agent_cli_sdk.channel import SessionChannel, SessionMessage, SessionMessageKind
from agent_cli_sdk.client import AgentClient
from agent_cli_sdk.errors import (
    AgentSdkError,
    AuthenticationError,
    CliNotFoundError,
    ExecutionError,
    ExecutionTimeoutError,
    ParseError,
    SessionError,
    ValidationError,
)
from agent_cli_sdk.events import EventType, StreamEvent
from agent_cli_sdk.extraction import extract_json, safe_parse
from agent_cli_sdk.models import (
    AdapterCapabilities,
    ExecutionOptions,
    ExecutionResponse,
    ExecutionStatus,
    OutputData,
    SessionInfo,
    SpawnResult,
)
from agent_cli_sdk.process import ProcessRunner
from agent_cli_sdk.session import Session

__version__ = "0.3.0"

__all__ = [
    "AdapterCapabilities",
    "AdapterSession",
    "AgentClient",
    "AgentSdkError",
    "AuthenticationError",
    "BaseAdapter",
    "ClaudeAdapter",
    "CliNotFoundError",
    "CodexAdapter",
    "EventType",
    "ExecutionError",
    "ExecutionOptions",
    "ExecutionResponse",
    "ExecutionStatus",
    "ExecutionTimeoutError",
    "OutputData",
    "ParseError",
    "ProcessRunner",
    "Session",
    "SessionChannel",
    "SessionError",
    "SessionInfo",
    "SessionMessage",
    "SessionMessageKind",
    "SpawnResult",
    "StreamEvent",
    "ValidationError",
    "__version__",
    "create_adapter",
    "extract_json",
    "list_adapter_keys",
    "register_adapter",
    "safe_parse",
]
