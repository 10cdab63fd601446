"""Vendor CLI adapters.

Each adapter turns one prompt into one vendor process, translates its JSONL
stdout into canonical events and finalizes an ``ExecutionResponse``.
"""

from agent_cli_sdk.adapters.base import BaseAdapter
from agent_cli_sdk.adapters.claude import ClaudeAdapter, build_claude_args
from agent_cli_sdk.adapters.codex import CodexAdapter, build_codex_args
from agent_cli_sdk.adapters.registry import create_adapter, list_adapter_keys, register_adapter
from agent_cli_sdk.adapters.session import AdapterSession

__all__ = [
    "AdapterSession",
    "BaseAdapter",
    "ClaudeAdapter",
    "CodexAdapter",
    "build_claude_args",
    "build_codex_args",
    "create_adapter",
    "list_adapter_keys",
    "register_adapter",
]
