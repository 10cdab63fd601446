"""High-level client: client-wide defaults, execution and a live-session registry."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from agent_cli_sdk.adapters.base import BaseAdapter
from agent_cli_sdk.adapters.registry import create_adapter
from agent_cli_sdk.channel import DEFAULT_QUEUE_SIZE
from agent_cli_sdk.config import Settings
from agent_cli_sdk.errors import ValidationError
from agent_cli_sdk.models import (
    AdapterCapabilities,
    ExecutionOptions,
    ExecutionResponse,
    SessionInfo,
)
from agent_cli_sdk.session import Session

logger = logging.getLogger(__name__)


class AgentClient:
    """Uniform entry point over one vendor adapter.

    Client defaults (``working_dir``, ``verbose``, ``log_path``,
    ``timeout_seconds``) sit beneath every call's options; call-level values
    win. Sessions become retrievable by id once their first ``send()`` has
    succeeded.
    """

    def __init__(  # noqa: PLR0913
        self,
        adapter: BaseAdapter | str,
        *,
        working_dir: Path | str | None = None,
        verbose: bool | None = None,
        log_path: Path | str | None = None,
        timeout_seconds: float | None = None,
        session_queue_size: int = DEFAULT_QUEUE_SIZE,
        **adapter_config: Any,
    ) -> None:
        if isinstance(adapter, str):
            adapter = create_adapter(adapter, **adapter_config)
        elif adapter_config:
            raise ValidationError("Adapter config is only accepted together with an adapter key.")
        self._adapter = adapter
        self._defaults = ExecutionOptions(
            working_dir=working_dir,
            verbose=verbose,
            log_path=log_path,
            timeout_seconds=timeout_seconds,
        )
        self._session_queue_size = session_queue_size
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, agent: str, settings: Settings | None = None) -> AgentClient:
        """Build a client for ``agent`` from environment-driven settings."""

        settings = settings or Settings.from_env()
        settings.validate()
        cli_path = settings.cli.claude_path if agent == "claude" else settings.cli.codex_path
        return cls(
            agent,
            verbose=settings.execution.verbose or None,
            log_path=settings.execution.log_path,
            timeout_seconds=settings.execution.timeout_seconds,
            session_queue_size=settings.session.queue_size,
            cli_path=cli_path,
            grace_seconds=settings.execution.grace_seconds,
        )

    @property
    def adapter(self) -> BaseAdapter:
        return self._adapter

    def get_capabilities(self) -> AdapterCapabilities:
        return self._adapter.get_capabilities()

    def execute(self, prompt: str, options: ExecutionOptions | None = None) -> ExecutionResponse:
        return self._adapter.execute(prompt, self._resolve(options))

    def create_session(self, options: ExecutionOptions | None = None) -> Session:
        if not self.get_capabilities().session_management:
            raise ValidationError(f"The {self._adapter.name} adapter does not support sessions.")
        adapter_session = self._adapter.create_session(
            self._resolve(options),
            queue_size=self._session_queue_size,
        )
        return Session(
            adapter_session,
            on_established=self._register,
            queue_size=self._session_queue_size,
        )

    def get_session(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.aborted:
            return None
        return session

    def abort_session(self, session_id: str) -> bool:
        """Flag the session as aborted and forget it; ``False`` if unknown."""

        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.abort()
        return True

    def list_active_sessions(self) -> list[SessionInfo]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.info() for session in sessions if not session.aborted]

    def _register(self, session: Session) -> None:
        session_id = session.session_id
        if session_id is None:
            return
        with self._lock:
            self._sessions[session_id] = session
        logger.debug("Registered %s session %s", self._adapter.name, session_id)

    def _resolve(self, options: ExecutionOptions | None) -> ExecutionOptions:
        resolved = self._defaults.merged_with(options)
        has_callback = resolved.on_output is not None or resolved.on_event is not None
        if has_callback and resolved.streaming is None:
            resolved = resolved.with_changes(streaming=True)
        return resolved
