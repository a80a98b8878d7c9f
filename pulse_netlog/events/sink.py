"""
Network Event Sinks.

A sink is the collaborator that receives finished events, typically a
persistent store. This module defines the sink protocol and a few sinks
for delivering events to logging, callbacks, or several sinks at once.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable
from uuid import uuid4

from pulse_netlog.events.events import (
    NetworkEvent,
    TaskCompletedEvent,
    TaskCreatedEvent,
    TaskProgressEvent,
)
from pulse_netlog.util.const import DEFAULT_LOGGER_NAME

logger = logging.getLogger(__name__)


@runtime_checkable
class EventSink(Protocol):
    """
    Protocol for network event sinks.

    Sinks are called from whichever thread delivered the transport
    callback, so implementations must be thread-safe.
    """

    def handle(self, event: NetworkEvent) -> None:
        """
        Receive a single event.

        Args:
            event: The event to handle
        """
        ...

    def current_session_id(self) -> str:
        """Identifier of the logging session events are recorded in."""
        ...


def new_session_id() -> str:
    return uuid4().hex


class SinkRegistry:
    """
    Fan events out to several named sinks.

    Errors in individual sinks are logged and don't affect others.

    Example:
        registry = SinkRegistry()
        registry.register("log", LogSink())
        registry.register("collector", TaskCollector())

        logger = NetworkLogger(sink=registry)
    """

    def __init__(self, session_id: Optional[str] = None):
        self._session_id = session_id or new_session_id()
        self._sinks: Dict[str, EventSink] = {}
        self._lock = threading.Lock()

    def register(self, name: str, sink: EventSink) -> "SinkRegistry":
        with self._lock:
            self._sinks[name] = sink
        return self

    def unregister(self, name: str) -> "SinkRegistry":
        with self._lock:
            self._sinks.pop(name, None)
        return self

    def get(self, name: str) -> Optional[EventSink]:
        with self._lock:
            return self._sinks.get(name)

    @property
    def sinks(self) -> List[EventSink]:
        with self._lock:
            return list(self._sinks.values())

    def current_session_id(self) -> str:
        return self._session_id

    def handle(self, event: NetworkEvent) -> None:
        with self._lock:
            sinks = list(self._sinks.items())
        for name, sink in sinks:
            try:
                sink.handle(event)
            except Exception as e:
                logger.warning("Sink %s failed: %s", name, e)


class LogSink:
    """
    Write events to the logging system.

    Completed tasks are logged at INFO, failed tasks at WARNING and
    everything else at DEBUG.

    Example:
        sink = LogSink(logger_name="myapp.network")
        sink.handle(event)  # Logs to myapp.network
    """

    def __init__(
        self,
        logger_name: str = DEFAULT_LOGGER_NAME,
        format_json: bool = False,
        session_id: Optional[str] = None,
    ):
        """
        Args:
            logger_name: Name of the logger to use
            format_json: If True, log events as JSON
            session_id: Session to report, generated if None
        """
        self._logger = logging.getLogger(logger_name)
        self._format_json = format_json
        self._session_id = session_id or new_session_id()

    def current_session_id(self) -> str:
        return self._session_id

    def handle(self, event: NetworkEvent) -> None:
        level = self._level_for(event)
        if not self._logger.isEnabledFor(level):
            return
        if self._format_json:
            message = json.dumps(event.to_dict())
        else:
            message = self._format_event(event)
        self._logger.log(level, message)

    @staticmethod
    def _level_for(event: NetworkEvent) -> int:
        if isinstance(event, TaskCompletedEvent):
            return logging.INFO if event.is_success else logging.WARNING
        return logging.DEBUG

    @staticmethod
    def _format_event(event: NetworkEvent) -> str:
        """Format an event for human-readable logging."""
        parts = [f"[{event.event_type.value}]"]

        if isinstance(event, TaskCreatedEvent):
            parts.append(f"task={event.task_id}")
            if event.original_request.method:
                parts.append(event.original_request.method)
            parts.append(str(event.url))

        elif isinstance(event, TaskProgressEvent):
            parts.append(f"task={event.task_id}")
            parts.append(f"{event.completed_unit_count}/{event.total_unit_count}")

        elif isinstance(event, TaskCompletedEvent):
            parts.append(f"task={event.task_id}")
            if event.original_request.method:
                parts.append(event.original_request.method)
            parts.append(str(event.url))
            if event.status_code is not None:
                parts.append(f"status={event.status_code}")
            if event.response_body:
                parts.append(f"bytes={len(event.response_body)}")
            if event.metrics and event.metrics.duration is not None:
                parts.append(f"duration={event.metrics.duration * 1000:.2f}ms")
            if event.error:
                parts.append(f"error={event.error.kind}: {event.error.debug_description}")

        return " ".join(parts)


class CallbackSink:
    """
    Deliver events to registered callbacks.

    Example:
        def on_event(event):
            print(event.event_type)

        sink = CallbackSink()
        sink.add_callback(on_event)
    """

    def __init__(self, session_id: Optional[str] = None):
        self._callbacks: List[Callable[[NetworkEvent], None]] = []
        self._session_id = session_id or new_session_id()

    def add_callback(self, callback: Callable[[NetworkEvent], None]) -> "CallbackSink":
        self._callbacks.append(callback)
        return self

    def remove_callback(self, callback: Callable) -> "CallbackSink":
        if callback in self._callbacks:
            self._callbacks.remove(callback)
        return self

    def current_session_id(self) -> str:
        return self._session_id

    def handle(self, event: NetworkEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.warning("Callback failed: %s", e)


class NullSink:
    """
    Sink that discards all events.

    Useful for disabling network logging without changing code.
    """

    def __init__(self, session_id: Optional[str] = None):
        self._session_id = session_id or new_session_id()

    def current_session_id(self) -> str:
        return self._session_id

    def handle(self, event: NetworkEvent) -> None:
        """Discard the event."""
        pass
