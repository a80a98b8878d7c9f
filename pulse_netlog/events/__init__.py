"""
Network Event Module

Event definitions, filtering, configuration, transformation and delivery
for the network logger.

Key Components:
- events: Event type definitions and data structures
- filter: Host/URL include and exclude filtering
- config: Logger configuration options
- transform: Transformation pipeline for redacting and dropping events
- sink: Event sinks
- collector: In-memory aggregation into task summaries
"""

from .events import (
    NetworkEvent,
    NetworkEventType,
    TaskCreatedEvent,
    TaskProgressEvent,
    TaskCompletedEvent,
)
from .filter import (
    EventFilter,
    resolve_host,
)
from .config import (
    NetworkLoggerConfig,
    EventHook,
    keep_event,
)
from .transform import (
    EventTransformer,
    TransformPipeline,
    RedactHeadersTransformer,
    EventTypeFilterTransformer,
    create_default_pipeline,
)
from .sink import (
    EventSink,
    SinkRegistry,
    LogSink,
    CallbackSink,
    NullSink,
)
from .collector import (
    TaskCollector,
    NetworkTaskSummary,
    TaskState,
)

__all__ = [
    # Events
    "NetworkEvent",
    "NetworkEventType",
    "TaskCreatedEvent",
    "TaskProgressEvent",
    "TaskCompletedEvent",
    # Filter
    "EventFilter",
    "resolve_host",
    # Config
    "NetworkLoggerConfig",
    "EventHook",
    "keep_event",
    # Transform
    "EventTransformer",
    "TransformPipeline",
    "RedactHeadersTransformer",
    "EventTypeFilterTransformer",
    "create_default_pipeline",
    # Sink
    "EventSink",
    "SinkRegistry",
    "LogSink",
    "CallbackSink",
    "NullSink",
    # Collector
    "TaskCollector",
    "NetworkTaskSummary",
    "TaskState",
]
