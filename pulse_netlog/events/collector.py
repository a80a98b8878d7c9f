"""
Network Event Collection and Aggregation.

This module provides a sink that keeps events in memory and aggregates
them into per-task summaries, for tests, debugging sessions and tools
that want to inspect recent traffic without a store.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pulse_netlog.events.events import (
    NetworkEvent,
    NetworkEventType,
    TaskCompletedEvent,
    TaskCreatedEvent,
    TaskProgressEvent,
)
from pulse_netlog.events.sink import new_session_id


class TaskState(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class NetworkTaskSummary:
    """
    Summary of a single task, built up from its events.
    """
    task_id: str
    url: Optional[str] = None
    method: Optional[str] = None

    state: TaskState = TaskState.PENDING
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    status_code: Optional[int] = None
    error_kind: Optional[str] = None
    completed_unit_count: int = 0
    total_unit_count: int = 0
    response_body_size: int = 0

    events: List[NetworkEvent] = field(default_factory=list)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.created_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.created_at).total_seconds() * 1000


class TaskCollector:
    """
    Collects events and aggregates them into task summaries.

    Example:
        collector = TaskCollector()
        logger = NetworkLogger(sink=collector)

        # ... traffic ...

        for task in collector.all_tasks():
            print(task.url, task.status_code)
    """

    def __init__(self, session_id: Optional[str] = None):
        self._session_id = session_id or new_session_id()
        self._lock = threading.Lock()
        self._events: List[NetworkEvent] = []
        self._tasks: Dict[str, NetworkTaskSummary] = {}

    def current_session_id(self) -> str:
        return self._session_id

    def handle(self, event: NetworkEvent) -> None:
        """
        Collect an event.

        Updates the summary of the task the event belongs to.

        Args:
            event: The event to collect
        """
        with self._lock:
            self._events.append(event)
            task_id = getattr(event, "task_id", None)
            if task_id is None:
                return
            summary = self._tasks.get(task_id)
            if summary is None:
                summary = NetworkTaskSummary(task_id=task_id)
                self._tasks[task_id] = summary
            summary.events.append(event)
            self._apply(summary, event)

    @staticmethod
    def _apply(summary: NetworkTaskSummary, event: NetworkEvent) -> None:
        if isinstance(event, TaskCreatedEvent):
            summary.url = event.url
            summary.method = event.original_request.method
            summary.created_at = event.created_at

        elif isinstance(event, TaskProgressEvent):
            summary.completed_unit_count = event.completed_unit_count
            summary.total_unit_count = event.total_unit_count

        elif isinstance(event, TaskCompletedEvent):
            summary.url = event.url
            summary.method = event.original_request.method
            if summary.created_at is None:
                summary.created_at = event.created_at
            summary.completed_at = event.created_at
            summary.status_code = event.status_code
            summary.error_kind = event.error.kind if event.error else None
            summary.response_body_size = len(event.response_body or b"")
            summary.state = TaskState.SUCCESS if event.is_success else TaskState.FAILURE

    def all_tasks(self) -> List[NetworkTaskSummary]:
        """All completed tasks, in completion order."""
        with self._lock:
            completed = [
                e.task_id for e in self._events
                if e.event_type == NetworkEventType.TASK_COMPLETED
            ]
            return [self._tasks[task_id] for task_id in completed]

    def get_task(self, task_id: str) -> Optional[NetworkTaskSummary]:
        with self._lock:
            return self._tasks.get(task_id)

    def get_events(self, event_type: Optional[NetworkEventType] = None) -> List[NetworkEvent]:
        """
        Get collected events.

        Args:
            event_type: Only return events of this type

        Returns:
            Events in the order they were collected
        """
        with self._lock:
            if event_type is None:
                return self._events.copy()
            return [e for e in self._events if e.event_type == event_type]

    def get_failures(self) -> List[NetworkTaskSummary]:
        return [t for t in self.all_tasks() if t.state == TaskState.FAILURE]

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._tasks.clear()
