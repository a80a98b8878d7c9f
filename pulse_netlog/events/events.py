"""
Network Event Type Definitions and Data Structures.

This module defines the immutable records produced for each lifecycle
moment of a network task. All events share the NetworkEvent base, which
gives them an identity, a timestamp and a dictionary form, so sinks can
handle, filter and store them uniformly.
"""

from __future__ import annotations

import base64
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, ClassVar, Dict, Optional
from uuid import uuid4

from pulse_netlog.models.error import ResponseError
from pulse_netlog.models.metrics import Metrics
from pulse_netlog.models.request import Request
from pulse_netlog.models.response import Response
from pulse_netlog.models.task import TaskType


class NetworkEventType(Enum):
    """Enumeration of network event types."""
    TASK_CREATED = "task_created"
    TASK_PROGRESS = "task_progress"
    TASK_COMPLETED = "task_completed"


def _encode_body(body: Optional[bytes]) -> Optional[str]:
    return base64.b64encode(body).decode("ascii") if body is not None else None


def _decode_body(value: Optional[str]) -> Optional[bytes]:
    return base64.b64decode(value) if value is not None else None


def _parse_time(value: Optional[str]) -> datetime:
    return datetime.fromisoformat(value) if value else datetime.now(UTC)


@dataclass(frozen=True, kw_only=True)
class NetworkEvent:
    """
    Base for all network events.

    Attributes:
        event_id: Unique identifier for this event
        timestamp: When the event was built
    """

    event_type: ClassVar[NetworkEventType]

    event_id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def with_changes(self, **changes: Any) -> NetworkEvent:
        """
        Create a new event with some fields replaced.

        Args:
            **changes: Field names and their new values

        Returns:
            New event of the same type
        """
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> NetworkEvent:
        """
        Rebuild an event from its dictionary form.

        Args:
            data: Output of ``to_dict``

        Returns:
            Event of the type named by ``event_type``

        Raises:
            ValueError: If the event type is unknown
        """
        event_type = NetworkEventType(data.get("event_type"))
        cls = _EVENT_CLASSES[event_type]
        return cls._from_dict(data)


@dataclass(frozen=True, kw_only=True)
class TaskCreatedEvent(NetworkEvent):
    """A task was created by the transport."""

    event_type: ClassVar[NetworkEventType] = NetworkEventType.TASK_CREATED

    task_id: str
    task_type: TaskType = TaskType.DATA
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    original_request: Request
    current_request: Optional[Request] = None
    session_id: str = ""

    @property
    def url(self) -> Optional[str]:
        return self.original_request.url

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "task_id": self.task_id,
            "task_type": self.task_type.value,
            "created_at": self.created_at.isoformat(),
            "original_request": self.original_request.model_dump(mode="json"),
            "current_request": (
                self.current_request.model_dump(mode="json")
                if self.current_request else None
            ),
            "session_id": self.session_id,
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> TaskCreatedEvent:
        return cls(
            event_id=data.get("event_id", uuid4().hex),
            timestamp=_parse_time(data.get("timestamp")),
            task_id=data["task_id"],
            task_type=TaskType(data.get("task_type", "data")),
            created_at=_parse_time(data.get("created_at")),
            original_request=Request.model_validate(data["original_request"]),
            current_request=(
                Request.model_validate(data["current_request"])
                if data.get("current_request") else None
            ),
            session_id=data.get("session_id", ""),
        )


@dataclass(frozen=True, kw_only=True)
class TaskProgressEvent(NetworkEvent):
    """Transfer progress for a task, in bytes."""

    event_type: ClassVar[NetworkEventType] = NetworkEventType.TASK_PROGRESS

    task_id: str
    url: Optional[str] = None
    completed_unit_count: int = 0
    total_unit_count: int = 0

    @property
    def fraction_completed(self) -> Optional[float]:
        if self.total_unit_count <= 0:
            return None
        return min(1.0, self.completed_unit_count / self.total_unit_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "task_id": self.task_id,
            "url": self.url,
            "completed_unit_count": self.completed_unit_count,
            "total_unit_count": self.total_unit_count,
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> TaskProgressEvent:
        return cls(
            event_id=data.get("event_id", uuid4().hex),
            timestamp=_parse_time(data.get("timestamp")),
            task_id=data["task_id"],
            url=data.get("url"),
            completed_unit_count=data.get("completed_unit_count", 0),
            total_unit_count=data.get("total_unit_count", 0),
        )


@dataclass(frozen=True, kw_only=True)
class TaskCompletedEvent(NetworkEvent):
    """
    Final record of a task.

    Attributes:
        task_id: Identifier generated when the task was first seen
        task_type: Kind of transfer
        created_at: When the record was assembled
        original_request: Request as first issued
        current_request: Request after redirects, if known
        response: Response snapshot, if a response arrived
        error: Structured error, if the task failed
        request_body: Request body bytes, if any
        response_body: Accumulated response body bytes
        metrics: Timing and transfer metrics, if collected
        session_id: Session reported by the sink
    """

    event_type: ClassVar[NetworkEventType] = NetworkEventType.TASK_COMPLETED

    task_id: str
    task_type: TaskType = TaskType.DATA
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    original_request: Request
    current_request: Optional[Request] = None
    response: Optional[Response] = None
    error: Optional[ResponseError] = None
    request_body: Optional[bytes] = None
    response_body: Optional[bytes] = None
    metrics: Optional[Metrics] = None
    session_id: str = ""

    @property
    def url(self) -> Optional[str]:
        return self.original_request.url

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response else None

    @property
    def is_success(self) -> bool:
        if self.error is not None:
            return False
        return self.response is None or self.response.is_success

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "task_id": self.task_id,
            "task_type": self.task_type.value,
            "created_at": self.created_at.isoformat(),
            "original_request": self.original_request.model_dump(mode="json"),
            "current_request": (
                self.current_request.model_dump(mode="json")
                if self.current_request else None
            ),
            "response": self.response.model_dump(mode="json") if self.response else None,
            "error": self.error.model_dump(mode="json") if self.error else None,
            "request_body": _encode_body(self.request_body),
            "response_body": _encode_body(self.response_body),
            "metrics": self.metrics.model_dump(mode="json") if self.metrics else None,
            "session_id": self.session_id,
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> TaskCompletedEvent:
        return cls(
            event_id=data.get("event_id", uuid4().hex),
            timestamp=_parse_time(data.get("timestamp")),
            task_id=data["task_id"],
            task_type=TaskType(data.get("task_type", "data")),
            created_at=_parse_time(data.get("created_at")),
            original_request=Request.model_validate(data["original_request"]),
            current_request=(
                Request.model_validate(data["current_request"])
                if data.get("current_request") else None
            ),
            response=Response.model_validate(data["response"]) if data.get("response") else None,
            error=ResponseError.model_validate(data["error"]) if data.get("error") else None,
            request_body=_decode_body(data.get("request_body")),
            response_body=_decode_body(data.get("response_body")),
            metrics=Metrics.model_validate(data["metrics"]) if data.get("metrics") else None,
            session_id=data.get("session_id", ""),
        )


_EVENT_CLASSES = {
    NetworkEventType.TASK_CREATED: TaskCreatedEvent,
    NetworkEventType.TASK_PROGRESS: TaskProgressEvent,
    NetworkEventType.TASK_COMPLETED: TaskCompletedEvent,
}
