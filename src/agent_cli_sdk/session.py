"""Vendor-neutral session handed out by :class:`~agent_cli_sdk.client.AgentClient`."""

from __future__ import annotations

import queue
from collections.abc import Callable

from agent_cli_sdk.adapters.session import AdapterSession
from agent_cli_sdk.channel import DEFAULT_QUEUE_SIZE, SessionChannel, SessionMessage
from agent_cli_sdk.models import ExecutionOptions, ExecutionResponse, SessionInfo


class Session:
    """Wrap an :class:`AdapterSession` and report when it becomes addressable.

    ``on_established`` runs once, after the first successful ``send()`` that
    leaves the session with an id. A session aborted while that send was in
    flight is never reported.
    """

    def __init__(
        self,
        adapter_session: AdapterSession,
        *,
        on_established: Callable[[Session], None] | None = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._inner = adapter_session
        self._on_established = on_established
        self._established = False
        self.channel = SessionChannel(queue_size)
        adapter_session.channel.link(self.channel)

    @property
    def session_id(self) -> str | None:
        return self._inner.session_id

    @property
    def message_count(self) -> int:
        return self._inner.message_count

    @property
    def started_at(self) -> float:
        return self._inner.started_at

    @property
    def last_message_at(self) -> float | None:
        return self._inner.last_message_at

    @property
    def aborted(self) -> bool:
        return self._inner.aborted

    @property
    def adapter_session(self) -> AdapterSession:
        return self._inner

    def send(self, prompt: str, options: ExecutionOptions | None = None) -> ExecutionResponse:
        response = self._inner.send(prompt, options)
        if self._inner.aborted:
            return response
        if not self._established and self._inner.session_id is not None:
            self._established = True
            if self._on_established is not None:
                self._on_established(self)
        return response

    def abort(self) -> None:
        self._inner.abort()

    def subscribe(self) -> queue.Queue[SessionMessage]:
        return self.channel.subscribe()

    def unsubscribe(self, subscriber: queue.Queue[SessionMessage]) -> None:
        self.channel.unsubscribe(subscriber)

    def info(self) -> SessionInfo:
        return self._inner.info()
