"""Multi-turn conversation over one adapter, one process per message."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from agent_cli_sdk.audit import session_message_log_path
from agent_cli_sdk.channel import (
    DEFAULT_QUEUE_SIZE,
    SessionChannel,
    SessionMessage,
    SessionMessageKind,
)
from agent_cli_sdk.errors import SessionError
from agent_cli_sdk.events import StreamEvent
from agent_cli_sdk.models import ExecutionOptions, ExecutionResponse, OutputData, SessionInfo

if TYPE_CHECKING:
    from agent_cli_sdk.adapters.base import BaseAdapter

logger = logging.getLogger(__name__)


class AdapterSession:
    """Thread the vendor session id through successive ``execute`` calls.

    The first message lets the vendor allocate an id (or pins
    ``options.session_id``); later messages resume that id. ``abort()`` only
    flags the session: a running ``send()`` finishes, later ones are rejected.
    """

    def __init__(
        self,
        adapter: BaseAdapter,
        options: ExecutionOptions | None = None,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.adapter = adapter
        self.options = options or ExecutionOptions()
        self.channel = SessionChannel(queue_size)
        self.started_at = time.time()
        self._lock = threading.Lock()
        self._session_id = self.options.session_id
        self._message_count = 0
        self._last_message_at: float | None = None
        self._aborted = False

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def message_count(self) -> int:
        return self._message_count

    @property
    def last_message_at(self) -> float | None:
        return self._last_message_at

    @property
    def aborted(self) -> bool:
        return self._aborted

    def send(self, prompt: str, options: ExecutionOptions | None = None) -> ExecutionResponse:
        """Execute one message of the conversation."""

        with self._lock:
            if self._aborted:
                raise SessionError("Session has been aborted.", session_id=self._session_id)
            self._message_count += 1
            message_number = self._message_count
            session_id = self._session_id

        call_options = self._message_options(message_number, session_id, options)
        try:
            response = self.adapter.execute(prompt, call_options)
        except Exception as error:
            self.channel.publish(SessionMessage(SessionMessageKind.ERROR, error))
            raise

        with self._lock:
            self._last_message_at = time.time()
            established = self._session_id
            if response.session_id and established is None:
                self._session_id = response.session_id
                logger.debug("%s session established: %s", self.adapter.name, response.session_id)

        if response.session_id and established is not None and response.session_id != established:
            error = SessionError(
                f"Session id changed from {established} to {response.session_id}.",
                session_id=established,
                response=response,
            )
            self.channel.publish(SessionMessage(SessionMessageKind.ERROR, error))
            raise error

        self.channel.publish(SessionMessage(SessionMessageKind.COMPLETE, response))
        return response

    def abort(self) -> None:
        with self._lock:
            if self._aborted:
                return
            self._aborted = True
        logger.debug("%s session %s aborted", self.adapter.name, self._session_id)
        self.channel.publish(SessionMessage(SessionMessageKind.ABORTED))

    def info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self._session_id or "",
            message_count=self._message_count,
            started_at=self.started_at,
            last_message_at=self._last_message_at,
            adapter=self.adapter.name,
        )

    def _message_options(
        self,
        message_number: int,
        session_id: str | None,
        override: ExecutionOptions | None,
    ) -> ExecutionOptions:
        merged = self.options.merged_with(override)
        user_on_output = merged.on_output
        user_on_event = merged.on_event

        def on_output(data: OutputData) -> None:
            self.channel.publish(SessionMessage(SessionMessageKind.OUTPUT, data))
            if user_on_output is not None:
                user_on_output(data)

        def on_event(event: StreamEvent) -> None:
            self.channel.publish(SessionMessage(SessionMessageKind.EVENT, event))
            if user_on_event is not None:
                user_on_event(event)

        changes: dict[str, object] = {"on_output": on_output, "on_event": on_event}
        if session_id is not None and message_number > 1:
            changes.update(session_id=session_id, resume=True, continue_session=None)
        if self.options.log_path is not None and (override is None or override.log_path is None):
            changes["log_path"] = session_message_log_path(self.options.log_path, message_number)
        return merged.with_changes(**changes)
