"""
Network Logger

This module turns transport callbacks for in-flight HTTP requests into
network events. It keeps per-task state between callbacks, assembles the
final record when a task completes, and forwards the events that pass the
configured filters to a sink.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional, Union

from pulse_netlog.errors import MissingOriginalRequestError
from pulse_netlog.events.config import NetworkLoggerConfig
from pulse_netlog.events.events import (
    NetworkEvent,
    TaskCompletedEvent,
    TaskCreatedEvent,
    TaskProgressEvent,
)
from pulse_netlog.events.sink import EventSink, LogSink
from pulse_netlog.execution.task_registry import TaskContext, TaskContextRegistry
from pulse_netlog.models.error import ResponseError
from pulse_netlog.models.metrics import Metrics
from pulse_netlog.models.task import NetworkTask

logger = logging.getLogger(__name__)

TaskError = Union[BaseException, ResponseError]


class NetworkLogger:
    """
    Records the lifecycle of network tasks.

    The transport integration calls the ``log_*`` methods as the task
    progresses. Callbacks may arrive concurrently from any thread, but the
    callbacks for a single task are expected in order: created, any number
    of data/progress/metrics reports, then exactly one completion.

    Per task:
    - log_task_created: emits a TaskCreatedEvent
    - log_data_received: buffers response body bytes
    - log_progress: emits a TaskProgressEvent
    - log_metrics: stores the metrics for the final record
    - log_task_completed: emits the TaskCompletedEvent, unless the logger
      waits for decoding and the task succeeded
    - log_decoding_completed: emits the TaskCompletedEvent in that mode

    Example:
        collector = TaskCollector()
        network_logger = NetworkLogger(
            sink=collector,
            included_hosts={"*.example.com"},
        )

        task = NetworkTask(original_request=Request(url="https://api.example.com"))
        network_logger.log_task_created(task)
        network_logger.log_data_received(task, b'{"ok": true}')
        network_logger.log_task_completed(task)
    """

    def __init__(
        self,
        sink: Optional[EventSink] = None,
        config: Optional[NetworkLoggerConfig] = None,
        **options,
    ):
        """
        Initialize the network logger.

        Args:
            sink: Receives the events, logs them if None
            config: Logger configuration
            **options: Overrides for individual NetworkLoggerConfig fields

        Raises:
            PatternCompilationError: With ``strict_patterns``, if a pattern
                does not compile
        """
        if config is None:
            config = NetworkLoggerConfig(**options)
        elif options:
            config = dataclasses.replace(config, **options)

        self.config = config
        self.sink: EventSink = sink if sink is not None else LogSink()
        self.filter = config.build_filter()
        self.registry = TaskContextRegistry(retired_capacity=config.retired_capacity)

        logger.debug(
            "NetworkLogger initialized: waiting_for_decoding=%s, regex=%s, %d pattern diagnostics",
            config.is_waiting_for_decoding,
            config.is_regex_enabled,
            len(self.filter.diagnostics),
        )

    # Callbacks -------------------------------------------------------------

    def log_task_created(self, task: NetworkTask) -> None:
        """Log the task creation."""
        context = self.registry.get_or_create(task.token, task.original_request)
        if context is None:
            return
        original_request = task.original_request or context.request
        if original_request is None:
            logger.debug("Task %s created without a request", context.task_id)
            return
        self._send(TaskCreatedEvent(
            task_id=context.task_id,
            task_type=task.task_type,
            original_request=original_request,
            current_request=task.current_request,
            session_id=self._session_id(),
        ))

    def log_data_received(self, task: NetworkTask, data: bytes) -> None:
        """Log response body bytes that follow the previously received chunks."""
        self.registry.append_body(task.token, data)

    def log_progress(self, task: NetworkTask, completed: int, total: int) -> None:
        """Log transfer progress in bytes; ``total`` is -1 or 0 when unknown."""
        context = self.registry.get_or_create(task.token, task.original_request)
        if context is None:
            return
        self._send(TaskProgressEvent(
            task_id=context.task_id,
            url=task.url,
            completed_unit_count=completed,
            total_unit_count=total,
        ))

    def log_metrics(self, task: NetworkTask, metrics: Metrics) -> None:
        """Log the task metrics."""
        self.registry.set_metrics(task.token, metrics)

    def log_task_completed(self, task: NetworkTask, error: Optional[TaskError] = None) -> None:
        """
        Log the task completion.

        When waiting for decoding, a successful task stays open until
        ``log_decoding_completed``. A failed task always completes here.
        """
        if error is None and self.config.is_waiting_for_decoding:
            logger.debug("Task %s finished loading, waiting for decoding", task.token)
            return
        self._complete(task, error)

    def log_decoding_completed(self, task: NetworkTask, error: Optional[TaskError] = None) -> None:
        """
        Log the end of response decoding, completing the task.

        Only used when waiting for decoding; otherwise the task already
        completed in ``log_task_completed`` and the call is ignored.
        """
        if not self.config.is_waiting_for_decoding:
            logger.debug("Task %s decoded, not waiting for decoding", task.token)
            return
        self._complete(task, error)

    # Assembly --------------------------------------------------------------

    @property
    def pending_tasks(self) -> int:
        """Number of tasks that were seen but have not completed."""
        return len(self.registry)

    def _complete(self, task: NetworkTask, error: Optional[TaskError]) -> None:
        context = self.registry.remove(task.token, task.original_request)
        if context is None:
            return
        try:
            event = self._make_completed_event(task, context, error)
        except MissingOriginalRequestError as e:
            logger.debug("Dropping completed task: %s", e)
            return
        self._send(event)

    def _make_completed_event(
        self,
        task: NetworkTask,
        context: TaskContext,
        error: Optional[TaskError],
    ) -> TaskCompletedEvent:
        original_request = task.original_request or context.request
        if original_request is None:
            raise MissingOriginalRequestError(context.task_id)

        if error is not None and not isinstance(error, ResponseError):
            error = ResponseError.from_exception(error)

        return TaskCompletedEvent(
            task_id=context.task_id,
            task_type=task.task_type,
            original_request=original_request,
            current_request=task.current_request,
            response=task.response,
            error=error,
            request_body=task.resolved_request_body(),
            response_body=bytes(context.data),
            metrics=context.metrics,
            session_id=self._session_id(),
        )

    def _session_id(self) -> str:
        try:
            return self.sink.current_session_id()
        except Exception as e:
            logger.warning("Sink failed to report a session: %s", e)
            return ""

    def _send(self, event: NetworkEvent) -> None:
        if not self.filter.keep(event):
            return
        try:
            handled = self.config.will_handle_event(event)
        except Exception as e:
            logger.warning("Event hook failed for %s, dropping it: %s", type(event).__name__, e)
            return
        if handled is None:
            logger.debug("Event hook dropped %s", type(event).__name__)
            return
        try:
            self.sink.handle(handled)
        except Exception as e:
            logger.warning("Sink failed to handle %s: %s", type(handled).__name__, e)
