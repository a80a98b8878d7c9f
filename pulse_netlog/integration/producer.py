"""Callback interface between a transport integration and the network logger."""

from __future__ import annotations

from typing import Optional, Protocol, Union, runtime_checkable

from pulse_netlog.models.error import ResponseError
from pulse_netlog.models.metrics import Metrics
from pulse_netlog.models.task import NetworkTask


@runtime_checkable
class TaskEventConsumer(Protocol):
    """
    The callbacks a transport integration delivers for each task.

    NetworkLogger implements this protocol; integrations depend on it
    rather than on the logger so that they can be tested with a recorder.
    """

    def log_task_created(self, task: NetworkTask) -> None:
        ...

    def log_data_received(self, task: NetworkTask, data: bytes) -> None:
        ...

    def log_progress(self, task: NetworkTask, completed: int, total: int) -> None:
        ...

    def log_metrics(self, task: NetworkTask, metrics: Metrics) -> None:
        ...

    def log_task_completed(
        self, task: NetworkTask, error: Optional[Union[BaseException, ResponseError]] = None
    ) -> None:
        ...

    def log_decoding_completed(
        self, task: NetworkTask, error: Optional[Union[BaseException, ResponseError]] = None
    ) -> None:
        ...
