"""
TaskContextRegistry - Tracks accumulated state for in-flight tasks.

Transport callbacks for one task can arrive on any thread. Each callback
updates the task's context under a single lock, and the terminal callback
removes it. Nothing but dictionary reads and writes happens while the lock
is held.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Optional
from uuid import uuid4

from pulse_netlog.models.metrics import Metrics
from pulse_netlog.models.request import Request
from pulse_netlog.models.task import TaskToken
from pulse_netlog.util.const import DEFAULT_RETIRED_CAPACITY

logger = logging.getLogger(__name__)


@dataclass
class TaskContext:
    """State gathered for one task between creation and completion."""
    task_id: str = field(default_factory=lambda: uuid4().hex)
    request: Optional[Request] = None
    data: bytearray = field(default_factory=bytearray)
    metrics: Optional[Metrics] = None


class TaskContextRegistry:
    """
    Maps task tokens to their contexts.

    Lifecycle of an entry:
    - created by the first callback that mentions the token
    - updated by data, metrics and progress callbacks
    - removed exactly once by the terminal callback

    Removed tokens are remembered (up to ``retired_capacity``) so that
    callbacks arriving after completion, such as a late metrics report,
    are ignored instead of starting a context nobody will ever read. A
    token that has dropped out of that window is indistinguishable from a
    new one; its late callbacks create an orphan context that stays until
    the process exits.
    """

    def __init__(self, retired_capacity: int = DEFAULT_RETIRED_CAPACITY):
        """
        Args:
            retired_capacity: Number of removed tokens to remember
        """
        self._lock = threading.Lock()
        self._contexts: Dict[TaskToken, TaskContext] = {}
        self._retired: OrderedDict[TaskToken, None] = OrderedDict()
        self._retired_capacity = retired_capacity

    def _context(self, token: TaskToken, request: Optional[Request]) -> Optional[TaskContext]:
        # Caller holds the lock
        context = self._contexts.get(token)
        if context is None:
            if token in self._retired:
                return None
            context = TaskContext()
            self._contexts[token] = context
        if request is not None:
            context.request = request
        return context

    def _retire(self, token: TaskToken) -> None:
        # Caller holds the lock
        if self._retired_capacity <= 0:
            return
        self._retired[token] = None
        while len(self._retired) > self._retired_capacity:
            self._retired.popitem(last=False)

    def get_or_create(self, token: TaskToken, request: Optional[Request] = None) -> Optional[TaskContext]:
        """
        Get the context for a token, creating it if absent.

        Args:
            token: Task token
            request: Newer request snapshot to remember, if any

        Returns:
            The context, or None if the task already completed
        """
        with self._lock:
            context = self._context(token, request)
        if context is None:
            logger.debug("Ignoring callback for completed task %s", token)
        return context

    def append_body(self, token: TaskToken, data: bytes) -> bool:
        """
        Append response body bytes.

        Returns:
            False if the task already completed and the data was ignored
        """
        with self._lock:
            context = self._context(token, None)
            if context is not None:
                context.data.extend(data)
        if context is None:
            logger.debug("Ignoring %d bytes for completed task %s", len(data), token)
            return False
        return True

    def set_metrics(self, token: TaskToken, metrics: Metrics) -> bool:
        """
        Attach metrics to a task.

        Returns:
            False if the task already completed and the metrics were ignored
        """
        with self._lock:
            context = self._context(token, None)
            if context is not None:
                context.metrics = metrics
        if context is None:
            logger.debug("Ignoring metrics for completed task %s", token)
            return False
        return True

    def remove(self, token: TaskToken, request: Optional[Request] = None) -> Optional[TaskContext]:
        """
        Remove and return the context for a token.

        A token that was never seen gets a fresh context so that a task
        reported only by its terminal callback is still logged.

        Args:
            token: Task token
            request: Newer request snapshot to remember, if any

        Returns:
            The final context, or None if the task was already removed
        """
        with self._lock:
            context = self._context(token, request)
            if context is not None:
                del self._contexts[token]
                self._retire(token)
        if context is None:
            logger.debug("Task %s already completed", token)
        return context

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def __contains__(self, token: TaskToken) -> bool:
        with self._lock:
            return token in self._contexts

    def __repr__(self) -> str:
        return f"TaskContextRegistry(live={len(self)}, retired={len(self._retired)})"
