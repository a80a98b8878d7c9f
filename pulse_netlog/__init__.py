from pulse_netlog.network_logger import NetworkLogger
from pulse_netlog.events import (
    NetworkLoggerConfig,
    EventFilter,
    NetworkEvent,
    NetworkEventType,
    TaskCreatedEvent,
    TaskProgressEvent,
    TaskCompletedEvent,
    EventSink,
    LogSink,
    CallbackSink,
    NullSink,
    SinkRegistry,
    TaskCollector,
    TransformPipeline,
    create_default_pipeline,
)
from pulse_netlog.models import (
    NetworkTask,
    TaskToken,
    TaskType,
    Request,
    Response,
    ResponseError,
    Metrics,
)
from pulse_netlog.errors import PatternCompilationError, MissingOriginalRequestError
from pulse_netlog.integration import AiohttpNetworkTracer, TaskEventConsumer

__all__ = [
    "NetworkLogger",
    "NetworkLoggerConfig",
    "EventFilter",
    "NetworkEvent",
    "NetworkEventType",
    "TaskCreatedEvent",
    "TaskProgressEvent",
    "TaskCompletedEvent",
    "EventSink",
    "LogSink",
    "CallbackSink",
    "NullSink",
    "SinkRegistry",
    "TaskCollector",
    "TransformPipeline",
    "create_default_pipeline",
    "NetworkTask",
    "TaskToken",
    "TaskType",
    "Request",
    "Response",
    "ResponseError",
    "Metrics",
    "PatternCompilationError",
    "MissingOriginalRequestError",
    "AiohttpNetworkTracer",
    "TaskEventConsumer",
]
