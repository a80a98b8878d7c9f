"""
Producer-side task descriptions.

A NetworkTask is what a transport integration hands to the logger on every
callback. It owns a TaskToken, issued once when the task is created, which
is the only key the logger uses to find the task's accumulated state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pulse_netlog.models.request import Request
from pulse_netlog.models.response import Response


class TaskType(Enum):
    """Kind of transfer a task performs."""
    DATA = "data"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    STREAM = "stream"


@dataclass(frozen=True)
class TaskToken:
    """Opaque handle for one in-flight task. Never reused."""
    value: str

    @classmethod
    def issue(cls) -> TaskToken:
        return cls(uuid4().hex)

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False)
class NetworkTask:
    """
    Mutable view of one transfer as seen by the transport.

    The transport updates ``current_request`` on redirects and sets
    ``response`` once headers arrive. ``request_body`` holds a body that was
    known up front; streamed bodies are captured chunk by chunk in
    ``request_body_chunks``.
    """
    original_request: Optional[Request] = None
    current_request: Optional[Request] = None
    response: Optional[Response] = None
    task_type: TaskType = TaskType.DATA
    request_body: Optional[bytes] = None
    request_body_chunks: List[bytes] = field(default_factory=list)
    token: TaskToken = field(default_factory=TaskToken.issue)

    @property
    def url(self) -> Optional[str]:
        if self.original_request is None:
            return None
        return self.original_request.url

    def resolved_request_body(self) -> Optional[bytes]:
        """The buffered body, or the body reconstructed from the streamed chunks."""
        if self.request_body is not None:
            return self.request_body
        if self.request_body_chunks:
            return b"".join(self.request_body_chunks)
        return None
