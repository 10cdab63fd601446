from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import allure
import pytest

from agent_cli_sdk.adapters import registry
from agent_cli_sdk.adapters.claude import ClaudeAdapter
from agent_cli_sdk.adapters.codex import CodexAdapter
from agent_cli_sdk.client import AgentClient
from agent_cli_sdk.config import CliPathSettings, ExecutionSettings, Settings
from agent_cli_sdk.errors import ValidationError
from agent_cli_sdk.events import StreamEvent
from agent_cli_sdk.models import AdapterCapabilities, ExecutionOptions

pytestmark = [
    allure.epic("Client"),
    allure.feature("Agent Client"),
]


def _claude_turn(text: str = "ok", session_id: str = "sess-1") -> list[dict[str, Any]]:
    return [
        {"type": "system", "subtype": "init", "session_id": session_id},
        {
            "type": "assistant",
            "session_id": session_id,
            "message": {"content": [{"type": "text", "text": text}]},
        },
        {"type": "result", "subtype": "success", "result": text, "session_id": session_id},
    ]


class _SessionlessAdapter(ClaudeAdapter):
    name = "sessionless"
    capabilities = AdapterCapabilities(
        streaming=True,
        session_management=False,
        tool_calling=False,
        multi_modal=False,
    )


def test_client_defaults_apply_beneath_call_options(
    fake_agent: Callable,
    tmp_path: Path,
) -> None:
    claude = fake_agent("claude").add_turn(_claude_turn())
    default_dir = tmp_path / "default"
    call_dir = tmp_path / "call"
    default_dir.mkdir()
    call_dir.mkdir()
    client = AgentClient(
        ClaudeAdapter(cli_path=str(claude.path)),
        working_dir=default_dir,
        log_path=tmp_path / "logs",
    )

    client.execute("first")
    client.execute("second", ExecutionOptions(working_dir=call_dir))

    first, second = claude.calls()
    assert first["cwd"] == str(default_dir.resolve())
    assert second["cwd"] == str(call_dir.resolve())
    assert (tmp_path / "logs" / "input.json").exists()


def test_callbacks_turn_streaming_on_when_unset(fake_agent: Callable) -> None:
    claude = fake_agent("claude").add_turn(_claude_turn("streamed"))
    client = AgentClient(ClaudeAdapter(cli_path=str(claude.path)))
    events: list[StreamEvent] = []

    response = client.execute("hi", ExecutionOptions(on_event=events.append))

    assert response.output == "streamed"
    assert events
    assert "--output-format" in claude.calls()[0]["argv"]


def test_session_is_registered_after_first_send(fake_agent: Callable) -> None:
    claude = fake_agent("claude").add_turn(_claude_turn())
    client = AgentClient(ClaudeAdapter(cli_path=str(claude.path)))

    session = client.create_session()

    assert client.list_active_sessions() == []
    session.send("hello")
    assert client.get_session("sess-1") is session
    infos = client.list_active_sessions()
    assert [info.session_id for info in infos] == ["sess-1"]
    assert infos[0].message_count == 1


def test_abort_session_forgets_and_flags_session(fake_agent: Callable) -> None:
    claude = fake_agent("claude").add_turn(_claude_turn())
    client = AgentClient(ClaudeAdapter(cli_path=str(claude.path)))
    session = client.create_session()
    session.send("hello")

    assert client.abort_session("sess-1") is True
    assert client.abort_session("sess-1") is False
    assert client.get_session("sess-1") is None
    assert client.list_active_sessions() == []
    assert session.aborted is True


def test_unknown_session_lookups_are_empty(fake_agent: Callable) -> None:
    client = AgentClient(ClaudeAdapter(cli_path=str(fake_agent("claude").path)))

    assert client.get_session("missing") is None
    assert client.abort_session("missing") is False


def test_create_session_requires_session_capability(fake_agent: Callable) -> None:
    client = AgentClient(_SessionlessAdapter(cli_path=str(fake_agent("claude").path)))

    with pytest.raises(ValidationError, match="does not support sessions"):
        client.create_session()


def test_client_builds_adapter_from_registry_key(fake_agent: Callable) -> None:
    codex = fake_agent("codex")

    client = AgentClient("Codex", cli_path=str(codex.path))

    assert isinstance(client.adapter, CodexAdapter)
    assert client.get_capabilities().multi_modal is True


def test_unknown_registry_key_lists_known_adapters() -> None:
    with pytest.raises(registry.AdapterRegistryError, match="known: claude, codex"):
        AgentClient("gemini")


def test_adapter_config_requires_registry_key(fake_agent: Callable) -> None:
    adapter = ClaudeAdapter(cli_path=str(fake_agent("claude").path))

    with pytest.raises(ValidationError, match="adapter key"):
        AgentClient(adapter, cli_path="/usr/bin/claude")


def test_registry_accepts_custom_factories(
    fake_agent: Callable,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    claude = fake_agent("claude")
    registry.initialize_default_adapters()
    monkeypatch.setitem(
        registry._ADAPTER_REGISTRY,
        "sessionless",
        lambda **config: _SessionlessAdapter(cli_path=str(claude.path), **config),
    )

    adapter = registry.create_adapter(" SessionLess ")

    assert isinstance(adapter, _SessionlessAdapter)
    assert "sessionless" in registry.list_adapter_keys()
    with pytest.raises(registry.AdapterRegistryError, match="already registered"):
        registry.register_adapter("claude", ClaudeAdapter)
    with pytest.raises(registry.AdapterRegistryError, match="cannot be empty"):
        registry.register_adapter("  ", ClaudeAdapter)


def test_from_settings_wires_cli_path_and_defaults(fake_agent: Callable) -> None:
    claude = fake_agent("claude").add_turn(_claude_turn())
    settings = Settings(
        cli=CliPathSettings(claude_path=str(claude.path)),
        execution=ExecutionSettings(timeout_seconds=30, grace_seconds=0.5),
    )

    client = AgentClient.from_settings("claude", settings)
    response = client.execute("hi")

    assert client.adapter.cli_path == str(claude.path)
    assert response.output == "ok"


def test_from_settings_validates_settings(fake_agent: Callable) -> None:
    settings = Settings(
        cli=CliPathSettings(claude_path=str(fake_agent("claude").path)),
        execution=ExecutionSettings(timeout_seconds=-1),
    )

    with pytest.raises(ValueError, match="TIMEOUT_SECONDS"):
        AgentClient.from_settings("claude", settings)


def test_explicit_streaming_off_is_kept_with_callbacks(fake_agent: Callable) -> None:
    claude = fake_agent("claude").add_turn(stdout=["plain answer\n"])
    client = AgentClient(ClaudeAdapter(cli_path=str(claude.path)))
    outputs: list[Any] = []

    response = client.execute("hi", ExecutionOptions(streaming=False, on_output=outputs.append))

    assert response.output == "plain answer"
    assert outputs
    assert "--output-format" not in claude.calls()[0]["argv"]


def test_session_aborted_during_first_send_is_not_registered(fake_agent: Callable) -> None:
    claude = fake_agent("claude").add_turn(_claude_turn(), sleep=1.5)
    client = AgentClient(ClaudeAdapter(cli_path=str(claude.path)))
    session = client.create_session()
    worker = threading.Thread(target=session.send, args=("slow",))

    worker.start()
    deadline = time.monotonic() + 5
    while not claude.calls() and time.monotonic() < deadline:
        time.sleep(0.02)
    session.abort()
    worker.join(timeout=10)

    assert session.session_id == "sess-1"
    assert client.get_session("sess-1") is None
    assert client.list_active_sessions() == []


def test_registry_stays_consistent_under_concurrent_sessions(fake_agent: Callable) -> None:
    # No session id in the stream: each session keeps its pinned id.
    claude = fake_agent("claude").add_turn(
        [
            {"type": "assistant", "message": {"content": [{"type": "text", "text": "ok"}]}},
            {"type": "result", "subtype": "success", "result": "ok"},
        ],
    )
    client = AgentClient(ClaudeAdapter(cli_path=str(claude.path)))
    session_ids = [f"s-{index}" for index in range(8)]
    errors: list[BaseException] = []

    def converse(session_id: str) -> None:
        try:
            client.create_session(ExecutionOptions(session_id=session_id)).send("hi")
        except Exception as error:  # noqa: BLE001
            errors.append(error)

    senders = [threading.Thread(target=converse, args=(sid,)) for sid in session_ids]
    for thread in senders:
        thread.start()
    for thread in senders:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(info.session_id for info in client.list_active_sessions()) == session_ids

    aborted: list[bool] = []
    aborters = [
        threading.Thread(target=lambda sid=sid: aborted.append(client.abort_session(sid)))
        for sid in session_ids[:4] * 2
    ]
    for thread in aborters:
        thread.start()
    for thread in aborters:
        thread.join(timeout=10)

    assert aborted.count(True) == 4
    assert aborted.count(False) == 4
    remaining = sorted(info.session_id for info in client.list_active_sessions())
    assert remaining == session_ids[4:]
    assert all(client.get_session(sid) is None for sid in session_ids[:4])
    assert all(client.get_session(sid) is not None for sid in session_ids[4:])
