"""Incremental JSONL parsing and vendor-to-canonical event translation."""

from __future__ import annotations

import json
import logging
from typing import Any

from agent_cli_sdk.events import EventType, StreamEvent, synthesize
from agent_cli_sdk.models import EventCallback, OutputCallback, OutputData
from agent_cli_sdk.usage import UsageAccumulator

logger = logging.getLogger(__name__)

_CONTENT_EVENT_TYPES = frozenset(
    {
        EventType.ASSISTANT_MESSAGE,
        EventType.USER_MESSAGE,
        EventType.TOOL_STARTED,
        EventType.TOOL_COMPLETED,
        EventType.FILE_EVENT,
    },
)


class EventTranslator:
    """Per-run translator state shared by the vendor translators.

    Subclasses implement :meth:`_translate` (one vendor event in, canonical
    events out) and :meth:`_session_id_of`. The base class keeps the run-wide
    bookkeeping: first session id, turn boundaries, tools, files and usage.
    """

    vendor = "vendor"

    def __init__(self) -> None:
        self.session_id: str | None = None
        self.usage = UsageAccumulator()
        self.tools_used: list[str] = []
        self.files_modified: list[str] = []
        self.error_messages: list[str] = []
        self.vendor_error = False
        self.model: str | None = None
        self._turn_open = False

    def translate(self, vendor_event: dict[str, Any]) -> list[StreamEvent]:
        if self.session_id is None:
            session_id = self._session_id_of(vendor_event)
            if session_id:
                self.session_id = session_id

        translated = self._translate(vendor_event)
        events: list[StreamEvent] = []
        for event in translated:
            if event.type == EventType.TURN_STARTED:
                self._turn_open = True
            elif event.type in _CONTENT_EVENT_TYPES and not self._turn_open:
                events.append(synthesize(EventType.TURN_STARTED))
                self._turn_open = True
            elif event.type == EventType.TURN_COMPLETED:
                self._turn_open = False
            self._track(event)
            events.append(event)
        return events

    def _translate(self, vendor_event: dict[str, Any]) -> list[StreamEvent]:
        raise NotImplementedError

    def _session_id_of(self, vendor_event: dict[str, Any]) -> str | None:
        raise NotImplementedError

    def _track(self, event: StreamEvent) -> None:
        if event.type == EventType.TOOL_STARTED:
            name = self._tool_name(event)
            if name and name not in self.tools_used:
                self.tools_used.append(name)
        elif event.type == EventType.FILE_EVENT:
            for path in self._file_paths(event):
                if path not in self.files_modified:
                    self.files_modified.append(path)

    def _tool_name(self, event: StreamEvent) -> str | None:
        for key in ("name", "toolName", "tool_name"):
            name = event.data.get(key)
            if isinstance(name, str) and name:
                return name
        return None

    def _file_paths(self, event: StreamEvent) -> list[str]:
        return file_paths(event.data)


class JsonlStreamParser:
    """Turn stdout chunks into :class:`OutputData` bundles.

    Complete lines are parsed as JSON objects and translated; the trailing
    partial line is buffered until the next chunk or :meth:`flush`.
    """

    def __init__(
        self,
        translator: EventTranslator,
        *,
        on_output: OutputCallback | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        self.translator = translator
        self.events: list[StreamEvent] = []
        self._on_output = on_output
        self._on_event = on_event
        self._buffer = ""
        self._text_parts: list[str] = []

    @property
    def accumulated(self) -> str:
        return "".join(self._text_parts)

    def feed(self, chunk: str) -> list[OutputData]:
        """Consume one chunk; every chunk yields at least one bundle."""

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        bundles: list[OutputData] = []
        for line in lines:
            events = self._parse_line(line)
            if events is None:
                continue
            bundles.append(self._bundle("" if bundles else chunk, events))
        if not bundles:
            bundles.append(self._bundle(chunk, []))
        return bundles

    def flush(self) -> list[OutputData]:
        """Parse a final line left without a trailing newline."""

        remainder, self._buffer = self._buffer, ""
        events = self._parse_line(remainder)
        if events is None:
            return []
        return [self._bundle("", events)]

    def _parse_line(self, line: str) -> list[StreamEvent] | None:
        stripped = line.strip()
        if not stripped:
            return None
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug(
                "Skipping non-JSON %s output line: %.200s", self.translator.vendor, stripped,
            )
            return None
        if not isinstance(payload, dict):
            logger.debug(
                "Skipping non-object %s output line: %.200s", self.translator.vendor, stripped,
            )
            return None
        return self.translator.translate(payload)

    def _bundle(self, raw: str, events: list[StreamEvent]) -> OutputData:
        deltas = [
            event.text
            for event in events
            if event.type == EventType.ASSISTANT_MESSAGE and event.text
        ]
        text = "".join(deltas) if deltas else None
        if text is not None:
            self._text_parts.append(text)
        self.events.extend(events)

        if self._on_event is not None:
            for event in events:
                self._on_event(event)
        bundle = OutputData(raw=raw, events=events, text=text, accumulated=self.accumulated)
        if self._on_output is not None:
            self._on_output(bundle)
        return bundle


def file_paths(data: dict[str, Any]) -> list[str]:
    """Paths named by a file event payload, including ``changes[].path``."""

    paths: list[str] = []
    for key in ("path", "file_path", "file"):
        value = data.get(key)
        if isinstance(value, str) and value:
            paths.append(value)
    changes = data.get("changes")
    if isinstance(changes, list):
        for change in changes:
            if isinstance(change, dict) and isinstance(change.get("path"), str):
                paths.append(change["path"])
    return paths
