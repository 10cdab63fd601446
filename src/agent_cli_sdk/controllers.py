"""Controllers behind the ``agent-cli`` commands."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from agent_cli_sdk.adapters.claude import ClaudeAdapter
from agent_cli_sdk.adapters.codex import CodexAdapter
from agent_cli_sdk.adapters.detection import detect_and_probe
from agent_cli_sdk.client import AgentClient
from agent_cli_sdk.config import Settings
from agent_cli_sdk.errors import AgentSdkError
from agent_cli_sdk.models import ExecutionOptions, ExecutionResponse, OutputData

SUPPORTED_AGENTS: tuple[str, ...] = ("claude", "codex")

ClientFactory = Callable[[str], AgentClient]
TextWriter = Callable[[str], None]


@dataclass(slots=True)
class RunCommand:
    """CLI input for a single prompt."""

    agent: str
    prompt: str
    model: str | None = None
    timeout_seconds: float | None = None
    as_json: bool = False
    session_id: str | None = None
    resume: bool = False
    working_dir: Path | None = None
    log_path: Path | None = None


@dataclass(slots=True)
class ChatCommand:
    """CLI input for an interactive multi-turn session."""

    agent: str
    model: str | None = None
    timeout_seconds: float | None = None
    session_id: str | None = None
    working_dir: Path | None = None
    log_path: Path | None = None


@dataclass(slots=True)
class CommandResult:
    """Report lines to render plus overall outcome."""

    lines: list[str]
    success: bool


class AgentCliController:
    """Translate CLI commands into client calls and render their results."""

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self._client_factory = client_factory or _client_from_env

    def run(self, command: RunCommand, *, write: TextWriter) -> CommandResult:
        streamed: list[str] = []

        def on_output(data: OutputData) -> None:
            if data.text:
                streamed.append(data.text)
                write(data.text)

        options = ExecutionOptions(
            model=command.model,
            timeout_seconds=command.timeout_seconds,
            session_id=command.session_id,
            resume=command.resume or None,
            working_dir=command.working_dir,
            log_path=command.log_path,
            response_schema=True if command.as_json else None,
            on_output=None if command.as_json else on_output,
        )
        try:
            client = self._client_factory(command.agent)
            response = client.execute(command.prompt, options)
        except (AgentSdkError, ValueError) as error:
            return CommandResult(lines=[f"{command.agent} run failed: {error}"], success=False)

        lines: list[str] = []
        if command.as_json:
            lines.append(json.dumps(response.output, ensure_ascii=False, indent=2))
        elif streamed:
            lines.append("")
        elif response.output:
            lines.append(str(response.output))
        if response.error is not None:
            lines.append(f"error: {response.error.code}: {response.error.message}")
        lines.append(summary_line(response))
        return CommandResult(lines=lines, success=response.succeeded)

    def chat(
        self,
        command: ChatCommand,
        *,
        prompts: Iterable[str],
        write: TextWriter,
        emit: TextWriter,
    ) -> CommandResult:
        try:
            client = self._client_factory(command.agent)
            session = client.create_session(
                ExecutionOptions(
                    model=command.model,
                    timeout_seconds=command.timeout_seconds,
                    session_id=command.session_id,
                    working_dir=command.working_dir,
                    log_path=command.log_path,
                ),
            )
        except (AgentSdkError, ValueError) as error:
            return CommandResult(lines=[f"{command.agent} chat failed: {error}"], success=False)

        def on_output(data: OutputData) -> None:
            if data.text:
                write(data.text)

        for raw_prompt in prompts:
            prompt = raw_prompt.strip()
            if not prompt:
                continue
            try:
                response = session.send(prompt, ExecutionOptions(on_output=on_output))
            except AgentSdkError as error:
                return CommandResult(
                    lines=["", f"{command.agent} chat failed: {error}"],
                    success=False,
                )
            emit("")
            emit(summary_line(response))

        session_label = session.session_id or "-"
        return CommandResult(
            lines=[f"Session {session_label} closed after {session.message_count} message(s)."],
            success=True,
        )

    def detect(self) -> CommandResult:
        lines = ["Agent CLIs:"]
        found_any = False
        for adapter_cls in (ClaudeAdapter, CodexAdapter):
            detection = detect_and_probe(
                adapter_cls.cli_name,
                env_vars=adapter_cls.cli_path_env_vars,
            )
            if detection.found:
                found_any = True
                version = detection.version or "unknown version"
                lines.append(f"- {detection.name}: {detection.path} ({version})")
            else:
                lines.append(f"- {detection.name}: not found")
        return CommandResult(lines=lines, success=found_any)


def summary_line(response: ExecutionResponse) -> str:
    parts = [
        f"status={response.status.value}",
        f"session={response.session_id or '-'}",
        f"exit={response.exit_code}",
        f"duration_ms={response.duration_ms}",
    ]
    if response.usage is not None:
        parts.append(f"tokens={response.usage.total_tokens}")
    if response.total_cost_usd is not None:
        parts.append(f"cost_usd={response.total_cost_usd:.4f}")
    return " ".join(parts)


def _client_from_env(agent: str) -> AgentClient:
    return AgentClient.from_settings(agent, Settings.from_env())
