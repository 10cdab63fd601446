"""Codex (``codex exec``) adapter."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from agent_cli_sdk.adapters.base import BaseAdapter
from agent_cli_sdk.adapters.stream import EventTranslator, JsonlStreamParser, file_paths
from agent_cli_sdk.errors import ValidationError
from agent_cli_sdk.events import EventType, StreamEvent
from agent_cli_sdk.models import AdapterCapabilities, ExecutionOptions

_TOOL_START_ITEMS = frozenset({"tool_call", "command_execution", "mcp_tool_call"})
_TOOL_COMPLETE_ITEMS = frozenset({"tool_result", "command_execution", "mcp_tool_call"})


def build_codex_args(prompt: str, options: ExecutionOptions) -> list[str]:
    """Build ``codex exec`` argv. Flags precede ``resume ID``; the prompt is last."""

    args = ["exec"]
    if options.model:
        args.extend(["-m", options.model])
    if options.sandbox:
        args.extend(["-s", options.sandbox])
    if options.full_auto:
        args.append("--full-auto")
    if options.dangerously_skip_permissions:
        args.append("--dangerously-bypass-approvals-and-sandbox")
    if options.working_dir is not None:
        args.extend(["-C", str(options.working_dir)])
    for image in options.images or ():
        args.extend(["-i", image])
    if options.search:
        args.append("--search")
    if options.skip_git_repo_check:
        args.append("--skip-git-repo-check")
    if options.streaming is not False:
        args.append("--json")
    for key, value in (options.config_overrides or {}).items():
        args.extend(["-c", f"{key}={json.dumps(value)}"])
    if options.profile:
        args.extend(["-p", options.profile])

    if options.session_id:
        args.extend(["resume", options.session_id])
    args.append(prompt)
    return args


class CodexTranslator(EventTranslator):
    """Map ``codex exec --json`` events onto the canonical taxonomy."""

    vendor = "codex"

    def __init__(self) -> None:
        super().__init__()
        self.agent_messages: list[str] = []

    def _session_id_of(self, vendor_event: dict[str, Any]) -> str | None:
        if vendor_event.get("type") != "thread.started":
            return None
        thread_id = _payload(vendor_event).get("thread_id")
        return str(thread_id) if thread_id else None

    def _translate(self, vendor_event: dict[str, Any]) -> list[StreamEvent]:  # noqa: PLR0911
        payload = _payload(vendor_event)
        vendor_type = vendor_event.get("type") or payload.get("type")
        vendor_type = vendor_type if isinstance(vendor_type, str) else None

        if vendor_type == "thread.started":
            return [_event(EventType.THREAD_STARTED, payload, vendor_type)]
        if vendor_type == "turn.started":
            return [_event(EventType.TURN_STARTED, payload, vendor_type)]
        if vendor_type == "turn.completed":
            usage = payload.get("usage")
            if isinstance(usage, Mapping):
                self.usage.report_totals(usage)
            return [_event(EventType.TURN_COMPLETED, payload, vendor_type)]
        if vendor_type in {"item.started", "item.completed"}:
            return [self._item(payload, vendor_type)]
        if vendor_type in {"tool.started", "tool_use"}:
            return [_event(EventType.TOOL_STARTED, payload, vendor_type)]
        if vendor_type in {"file.written", "file.modified"}:
            return [_event(EventType.FILE_EVENT, payload, vendor_type)]
        if vendor_type in {"usage", "completion"}:
            usage = payload.get("usage")
            self.usage.report_totals(usage if isinstance(usage, Mapping) else payload)
        elif vendor_type in {"turn.failed", "error"}:
            self.vendor_error = True
            self.error_messages.append(_error_text(payload))
        return [_event(EventType.GENERIC, payload, vendor_type)]

    def _item(self, payload: dict[str, Any], vendor_type: str) -> StreamEvent:
        item = payload.get("item")
        item = item if isinstance(item, dict) else {}
        item_type = item.get("type") or item.get("item_type")
        completed = vendor_type == "item.completed"

        if item_type == "agent_message":
            text = item.get("text") if completed else None
            if isinstance(text, str) and text:
                self.agent_messages.append(text)
                return _event(EventType.ASSISTANT_MESSAGE, payload, vendor_type, text=text)
            return _event(EventType.ASSISTANT_MESSAGE, payload, vendor_type)
        if item_type == "user_message":
            return _event(EventType.USER_MESSAGE, payload, vendor_type)
        if item_type == "file_change":
            return _event(EventType.FILE_EVENT, payload, vendor_type)
        if not completed and item_type in _TOOL_START_ITEMS:
            return _event(EventType.TOOL_STARTED, payload, vendor_type)
        if completed and item_type in _TOOL_COMPLETE_ITEMS:
            return _event(EventType.TOOL_COMPLETED, payload, vendor_type)
        return _event(EventType.GENERIC, payload, vendor_type)

    def _tool_name(self, event: StreamEvent) -> str | None:
        item = event.data.get("item")
        if not isinstance(item, dict):
            return super()._tool_name(event)
        for key in ("name", "tool"):
            name = item.get(key)
            if isinstance(name, str) and name:
                return name
        item_type = item.get("type")
        return item_type if isinstance(item_type, str) else None

    def _file_paths(self, event: StreamEvent) -> list[str]:
        item = event.data.get("item")
        if isinstance(item, dict):
            return file_paths(item)
        return super()._file_paths(event)


class CodexAdapter(BaseAdapter):
    """Drive ``codex exec`` with JSONL output."""

    name = "codex"
    cli_name = "codex"
    cli_path_env_vars = ("AGENT_CLI_SDK_CODEX_PATH", "CODEX_CLI_PATH")
    capabilities = AdapterCapabilities(
        streaming=True,
        session_management=True,
        tool_calling=True,
        multi_modal=True,
    )

    def validate(self, prompt: str, options: ExecutionOptions) -> None:
        super().validate(prompt, options)
        if options.continue_session:
            raise ValidationError(
                "The codex adapter has no 'continue_session'; pass 'session_id' to resume.",
            )

    def build_args(self, prompt: str, options: ExecutionOptions) -> list[str]:
        return build_codex_args(prompt, options)

    def create_translator(self) -> CodexTranslator:
        return CodexTranslator()

    def final_text(
        self,
        translator: EventTranslator,
        parser: JsonlStreamParser,
        stdout: str,
    ) -> str:
        messages = getattr(translator, "agent_messages", [])
        if messages or parser.events:
            return "\n".join(messages)
        return stdout.strip()


def _payload(vendor_event: dict[str, Any]) -> dict[str, Any]:
    data = vendor_event.get("data")
    return data if isinstance(data, dict) else vendor_event


def _event(
    event_type: EventType,
    payload: dict[str, Any],
    vendor_type: str | None,
    *,
    text: str | None = None,
) -> StreamEvent:
    return StreamEvent(type=event_type, data=payload, vendor_type=vendor_type, text=text)


def _error_text(payload: dict[str, Any]) -> str:
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    message = payload.get("message")
    return message if isinstance(message, str) else "Execution failed"
