"""
Per-task state tracking for network logging.

Architecture:
- TaskContext: Accumulated request snapshot, response body and metrics
- TaskContextRegistry: Lock-guarded token -> context map
"""

from pulse_netlog.execution.task_registry import TaskContext, TaskContextRegistry

__all__ = [
    "TaskContext",
    "TaskContextRegistry",
]
