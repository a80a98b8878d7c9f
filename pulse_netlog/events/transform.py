"""
Network Event Transformation Pipeline.

This module provides transformers that can drop or rewrite events before
they reach the sink. A TransformPipeline is callable, so it can be used
directly as the ``will_handle_event`` hook of the logger configuration.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Set, runtime_checkable

from pulse_netlog.events.events import (
    NetworkEvent,
    NetworkEventType,
    TaskCompletedEvent,
    TaskCreatedEvent,
)
from pulse_netlog.util.const import REDACTED_HEADER_VALUE


@runtime_checkable
class EventTransformer(Protocol):
    """
    Protocol for network event transformers.

    Return None from ``transform`` to drop the event.
    """

    @property
    def name(self) -> str:
        ...

    @property
    def order(self) -> int:
        """
        Order in which this transformer runs, lower numbers first.

        - 10-19: Redaction
        - 20-29: Filtering
        """
        ...

    def transform(self, event: NetworkEvent) -> Optional[NetworkEvent]:
        ...


class TransformPipeline:
    """
    Chain of transformers applied in order.

    If any transformer returns None, the event is dropped and no
    subsequent transformers are called.

    Example:
        pipeline = TransformPipeline()
        pipeline.add(RedactHeadersTransformer({"Authorization"}))
        pipeline.add(EventTypeFilterTransformer(exclude_types={NetworkEventType.TASK_PROGRESS}))

        config = NetworkLoggerConfig(will_handle_event=pipeline)
    """

    def __init__(self, transformers: Iterable[EventTransformer] = ()):
        self._transformers: List[EventTransformer] = []
        for transformer in transformers:
            self.add(transformer)

    def add(self, transformer: EventTransformer) -> "TransformPipeline":
        """
        Add a transformer, keeping the pipeline sorted by ``order``.

        Returns:
            Self for chaining
        """
        self._transformers.append(transformer)
        self._transformers.sort(key=lambda t: t.order)
        return self

    def remove(self, name: str) -> "TransformPipeline":
        self._transformers = [t for t in self._transformers if t.name != name]
        return self

    def get(self, name: str) -> Optional[EventTransformer]:
        for t in self._transformers:
            if t.name == name:
                return t
        return None

    def process(self, event: NetworkEvent) -> Optional[NetworkEvent]:
        """
        Process an event through all transformers.

        Args:
            event: Event to process

        Returns:
            Transformed event, or None if dropped
        """
        current = event
        for transformer in self._transformers:
            current = transformer.transform(current)
            if current is None:
                return None
        return current

    __call__ = process

    @property
    def transformers(self) -> List[EventTransformer]:
        return self._transformers.copy()


class RedactHeadersTransformer:
    """
    Redact sensitive headers in request and response snapshots.

    Header names are matched case-insensitively and their values replaced
    with a marker. Bodies are left alone.

    Example:
        transformer = RedactHeadersTransformer({"authorization"})
        # {"Authorization": "Bearer abc", "Accept": "*/*"}
        # becomes {"Authorization": "<private>", "Accept": "*/*"}
    """

    DEFAULT_SENSITIVE_HEADERS = {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
    }

    name = "redact_headers"
    order = 10

    def __init__(
        self,
        headers: Optional[Set[str]] = None,
        redaction_marker: str = REDACTED_HEADER_VALUE,
    ):
        """
        Args:
            headers: Header names to redact, defaults to DEFAULT_SENSITIVE_HEADERS
            redaction_marker: Value written in place of a redacted header
        """
        source = self.DEFAULT_SENSITIVE_HEADERS if headers is None else headers
        self._headers = {h.lower() for h in source}
        self._marker = redaction_marker

    def _redact(self, snapshot):
        if snapshot is None:
            return None
        return snapshot.redacting_sensitive_headers(self._headers, self._marker)

    def transform(self, event: NetworkEvent) -> NetworkEvent:
        if isinstance(event, TaskCompletedEvent):
            return event.with_changes(
                original_request=self._redact(event.original_request),
                current_request=self._redact(event.current_request),
                response=self._redact(event.response),
            )
        if isinstance(event, TaskCreatedEvent):
            return event.with_changes(
                original_request=self._redact(event.original_request),
                current_request=self._redact(event.current_request),
            )
        return event


class EventTypeFilterTransformer:
    """
    Drop events by type.

    Example:
        # Skip progress reports, keep created and completed events
        transformer = EventTypeFilterTransformer(
            exclude_types={NetworkEventType.TASK_PROGRESS}
        )
    """

    name = "event_type_filter"
    order = 20

    def __init__(
        self,
        include_types: Optional[Set[NetworkEventType]] = None,
        exclude_types: Optional[Set[NetworkEventType]] = None,
    ):
        self.include_types = include_types
        self.exclude_types = exclude_types or set()

    def transform(self, event: NetworkEvent) -> Optional[NetworkEvent]:
        if self.include_types and event.event_type not in self.include_types:
            return None
        if event.event_type in self.exclude_types:
            return None
        return event


def create_default_pipeline(
    redact_headers: Optional[Set[str]] = None,
    include_progress: bool = True,
) -> TransformPipeline:
    """
    Create a pipeline with common defaults.

    Args:
        redact_headers: Header names to redact, None for the default set
        include_progress: Whether progress events reach the sink

    Returns:
        Configured TransformPipeline
    """
    pipeline = TransformPipeline()
    pipeline.add(RedactHeadersTransformer(redact_headers))
    if not include_progress:
        pipeline.add(EventTypeFilterTransformer(exclude_types={NetworkEventType.TASK_PROGRESS}))
    return pipeline
