from pulse_netlog.models.request import Request
from pulse_netlog.models.response import Response
from pulse_netlog.models.error import (
    ResponseError,
    TransportError,
    DecodingContext,
    Cancelled,
    TimedOut,
    ConnectivityFailure,
    TLSFailure,
    TypeMismatch,
    KeyNotFound,
    ValueNotFound,
    DataCorrupted,
)
from pulse_netlog.models.metrics import (
    Metrics,
    TransactionMetrics,
    TransactionTiming,
    TransferSize,
)
from pulse_netlog.models.task import NetworkTask, TaskToken, TaskType

__all__ = [
    "Request",
    "Response",
    "ResponseError",
    "TransportError",
    "DecodingContext",
    "Cancelled",
    "TimedOut",
    "ConnectivityFailure",
    "TLSFailure",
    "TypeMismatch",
    "KeyNotFound",
    "ValueNotFound",
    "DataCorrupted",
    "Metrics",
    "TransactionMetrics",
    "TransactionTiming",
    "TransferSize",
    "NetworkTask",
    "TaskToken",
    "TaskType",
]
