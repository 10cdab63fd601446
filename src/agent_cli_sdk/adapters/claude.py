"""Claude Code (``claude``) adapter."""

from __future__ import annotations

import json
import logging
import os
import warnings
from collections.abc import Mapping
from typing import Any

from agent_cli_sdk.adapters.base import BaseAdapter
from agent_cli_sdk.adapters.stream import EventTranslator, JsonlStreamParser
from agent_cli_sdk.events import EventType, StreamEvent
from agent_cli_sdk.models import AdapterCapabilities, ExecutionOptions
from agent_cli_sdk.process import DEFAULT_GRACE_SECONDS, ProcessRunner

logger = logging.getLogger(__name__)

API_KEY_ENV = "ANTHROPIC_API_KEY"
OAUTH_TOKEN_ENV = "CLAUDE_CODE_OAUTH_TOKEN"

# Tools whose ``file_path`` input is a file the agent writes.
_FILE_WRITING_TOOLS = frozenset({"Write", "Edit", "MultiEdit", "NotebookEdit"})


def build_claude_args(prompt: str, options: ExecutionOptions) -> list[str]:
    """Build ``claude`` argv; the prompt is always the last argument."""

    args = ["-p"]
    if options.model:
        args.extend(["--model", options.model])

    if options.session_id and options.resume:
        args.extend(["--resume", options.session_id])
    elif options.session_id:
        args.extend(["--session-id", options.session_id])
    elif options.continue_session:
        args.append("--continue")

    if options.permission_mode:
        args.extend(["--permission-mode", options.permission_mode])
    elif options.dangerously_skip_permissions:
        args.extend(["--permission-mode", "acceptEdits"])

    if options.streaming is not False:
        # stream-json output is only emitted together with --verbose.
        args.extend(["--output-format", "stream-json", "--verbose"])
    elif options.verbose:
        args.append("--verbose")

    if options.allowed_tools:
        args.extend(["--allowed-tools", ",".join(options.allowed_tools)])
    if options.disallowed_tools:
        args.extend(["--disallowed-tools", ",".join(options.disallowed_tools)])

    args.append(prompt)
    return args


class ClaudeTranslator(EventTranslator):
    """Map ``stream-json`` events onto the canonical taxonomy."""

    vendor = "claude"

    def __init__(self) -> None:
        super().__init__()
        self.result_text: str | None = None

    def _session_id_of(self, vendor_event: dict[str, Any]) -> str | None:
        value = vendor_event.get("session_id") or vendor_event.get("sessionId")
        return str(value) if value else None

    def _translate(self, vendor_event: dict[str, Any]) -> list[StreamEvent]:
        vendor_type = vendor_event.get("type")
        if vendor_type == "system" and vendor_event.get("subtype", "init") == "init":
            model = vendor_event.get("model")
            if isinstance(model, str) and model:
                self.model = model
            return [self._event(EventType.THREAD_STARTED, vendor_event)]
        if vendor_type == "assistant":
            return self._assistant(vendor_event)
        if vendor_type == "user":
            return self._user(vendor_event)
        if vendor_type == "result":
            self._result(vendor_event)
            return [self._event(EventType.TURN_COMPLETED, vendor_event)]
        if vendor_type == "error":
            self.vendor_error = True
            self.error_messages.append(_error_text(vendor_event))
        return [self._event(EventType.GENERIC, vendor_event)]

    def _assistant(self, vendor_event: dict[str, Any]) -> list[StreamEvent]:
        message = vendor_event.get("message")
        message = message if isinstance(message, dict) else {}
        model = message.get("model")
        if isinstance(model, str) and model and self.model is None:
            self.model = model
        usage = message.get("usage")
        if isinstance(usage, Mapping):
            self.usage.add(usage, model=model if isinstance(model, str) else "unknown")

        content = message.get("content")
        texts: list[str] = []
        tools: list[StreamEvent] = []
        if isinstance(content, str):
            texts.append(content)
        elif isinstance(content, list):
            for block in content:
                if not isinstance(block, dict):
                    continue
                if block.get("type") == "text" and isinstance(block.get("text"), str):
                    texts.append(block["text"])
                elif block.get("type") == "tool_use":
                    tools.append(
                        self._event(EventType.TOOL_STARTED, block, vendor_type="tool_use"),
                    )
                    self._track_written_file(block)

        assistant = self._event(
            EventType.ASSISTANT_MESSAGE,
            vendor_event,
            text="".join(texts) or None,
        )
        return [assistant, *tools]

    def _user(self, vendor_event: dict[str, Any]) -> list[StreamEvent]:
        message = vendor_event.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        events = [self._event(EventType.USER_MESSAGE, vendor_event)]
        if isinstance(content, list):
            events.extend(
                self._event(EventType.TOOL_COMPLETED, block, vendor_type="tool_result")
                for block in content
                if isinstance(block, dict) and block.get("type") == "tool_result"
            )
        return events

    def _result(self, vendor_event: dict[str, Any]) -> None:
        result = vendor_event.get("result")
        if isinstance(result, str):
            self.result_text = result
        elif result is not None:
            self.result_text = json.dumps(result, ensure_ascii=False)

        usage = vendor_event.get("usage")
        if isinstance(usage, Mapping):
            self.usage.report_totals(usage)
        model_usage = vendor_event.get("modelUsage")
        if isinstance(model_usage, Mapping):
            self.usage.report_model_usage(model_usage)
        self.usage.report_cost(vendor_event.get("total_cost_usd"))

        subtype = vendor_event.get("subtype")
        failed_subtype = isinstance(subtype, str) and subtype.startswith("error")
        if vendor_event.get("is_error") or failed_subtype:
            self.vendor_error = True
            self.error_messages.append(
                self.result_text or (subtype if isinstance(subtype, str) else "Execution failed"),
            )

    def _track_written_file(self, block: dict[str, Any]) -> None:
        tool_input = block.get("input")
        if block.get("name") not in _FILE_WRITING_TOOLS or not isinstance(tool_input, dict):
            return
        path = tool_input.get("file_path") or tool_input.get("notebook_path")
        if isinstance(path, str) and path and path not in self.files_modified:
            self.files_modified.append(path)

    @staticmethod
    def _event(
        event_type: EventType,
        data: dict[str, Any],
        *,
        vendor_type: str | None = None,
        text: str | None = None,
    ) -> StreamEvent:
        return StreamEvent(
            type=event_type,
            data=data,
            vendor_type=vendor_type or str(data.get("type", "")) or None,
            text=text,
        )


class ClaudeAdapter(BaseAdapter):
    """Drive ``claude -p`` with ``stream-json`` output."""

    name = "claude"
    cli_name = "claude"
    cli_path_env_vars = ("AGENT_CLI_SDK_CLAUDE_PATH", "CLAUDE_CLI_PATH")
    capabilities = AdapterCapabilities(
        streaming=True,
        session_management=True,
        tool_calling=True,
        multi_modal=False,
    )
    default_options = ExecutionOptions(model="sonnet", dangerously_skip_permissions=True)

    def __init__(  # noqa: PLR0913
        self,
        *,
        cli_path: str | None = None,
        api_key: str | None = None,
        oauth_token: str | None = None,
        env: Mapping[str, str] | None = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        runner: ProcessRunner | None = None,
    ) -> None:
        super().__init__(cli_path=cli_path, env=env, grace_seconds=grace_seconds, runner=runner)
        if api_key:
            self._env_overrides[API_KEY_ENV] = api_key
        if oauth_token:
            self._env_overrides[OAUTH_TOKEN_ENV] = oauth_token
        self._drop_api_key = bool(
            self._credential(API_KEY_ENV) and self._credential(OAUTH_TOKEN_ENV),
        )
        if self._drop_api_key:
            message = (
                f"Both {API_KEY_ENV} and {OAUTH_TOKEN_ENV} are set; "
                f"using {OAUTH_TOKEN_ENV} and ignoring {API_KEY_ENV}."
            )
            logger.warning(message)
            warnings.warn(message, UserWarning, stacklevel=2)

    def build_args(self, prompt: str, options: ExecutionOptions) -> list[str]:
        return build_claude_args(prompt, options)

    def build_env(self) -> dict[str, str]:
        env = super().build_env()
        if self._drop_api_key:
            env.pop(API_KEY_ENV, None)
        return env

    def create_translator(self) -> ClaudeTranslator:
        return ClaudeTranslator()

    def final_text(
        self,
        translator: EventTranslator,
        parser: JsonlStreamParser,
        stdout: str,
    ) -> str:
        result_text = getattr(translator, "result_text", None)
        if result_text:
            return result_text
        if parser.accumulated or parser.events:
            return parser.accumulated
        return stdout.strip()

    def _credential(self, name: str) -> str | None:
        return self._env_overrides.get(name) or os.getenv(name) or None


def _error_text(vendor_event: dict[str, Any]) -> str:
    error = vendor_event.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    message = vendor_event.get("message")
    return message if isinstance(message, str) else "Execution failed"
