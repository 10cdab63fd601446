"""Broadcast channel carrying session output to bounded subscriber queues."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class SessionMessageKind(str, Enum):
    OUTPUT = "output"
    EVENT = "event"
    COMPLETE = "complete"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass(slots=True)
class SessionMessage:
    """One item on a session channel.

    ``payload`` is an ``OutputData`` for ``output``, a ``StreamEvent`` for
    ``event``, the ``ExecutionResponse`` for ``complete``, the exception for
    ``error`` and ``None`` for ``aborted``.
    """

    kind: SessionMessageKind
    payload: Any = None


class SessionChannel:
    """Fan-out of session messages; a full subscriber queue drops its oldest item."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if queue_size <= 0:
            raise ValueError("queue_size must be a positive integer.")
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue[SessionMessage]] = []
        self._downstream: list[SessionChannel] = []

    def subscribe(self) -> queue.Queue[SessionMessage]:
        subscriber: queue.Queue[SessionMessage] = queue.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: queue.Queue[SessionMessage]) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def link(self, downstream: SessionChannel) -> None:
        """Forward every message published here to ``downstream`` unchanged."""

        with self._lock:
            self._downstream.append(downstream)

    def publish(self, message: SessionMessage) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            downstream = list(self._downstream)
        for subscriber in subscribers:
            _put_dropping_oldest(subscriber, message)
        for channel in downstream:
            channel.publish(message)


def _put_dropping_oldest(subscriber: queue.Queue[SessionMessage], message: SessionMessage) -> None:
    while True:
        try:
            subscriber.put_nowait(message)
        except queue.Full:
            try:
                dropped = subscriber.get_nowait()
            except queue.Empty:
                continue
            logger.warning("Session subscriber queue full; dropped %s message", dropped.kind.value)
        else:
            return
