from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TransactionTiming(BaseModel):
    """Timestamps of one request/response transaction, any of which may be missing."""
    model_config = ConfigDict(frozen=True)

    fetch_start: Optional[datetime] = None
    domain_lookup_start: Optional[datetime] = None
    domain_lookup_end: Optional[datetime] = None
    connect_start: Optional[datetime] = None
    secure_connection_start: Optional[datetime] = None
    secure_connection_end: Optional[datetime] = None
    connect_end: Optional[datetime] = None
    request_start: Optional[datetime] = None
    request_end: Optional[datetime] = None
    response_start: Optional[datetime] = None
    response_end: Optional[datetime] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.fetch_start is None or self.response_end is None:
            return None
        return (self.response_end - self.fetch_start).total_seconds() * 1000


class TransferSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_headers_bytes_sent: int = 0
    request_body_bytes_sent: int = 0
    response_headers_bytes_received: int = 0
    response_body_bytes_received: int = 0

    def merged(self, other: 'TransferSize') -> 'TransferSize':
        return TransferSize(
            request_headers_bytes_sent=self.request_headers_bytes_sent + other.request_headers_bytes_sent,
            request_body_bytes_sent=self.request_body_bytes_sent + other.request_body_bytes_sent,
            response_headers_bytes_received=self.response_headers_bytes_received + other.response_headers_bytes_received,
            response_body_bytes_received=self.response_body_bytes_received + other.response_body_bytes_received,
        )


class TransactionMetrics(BaseModel):
    """Metrics for a single hop; redirects produce one transaction per hop."""
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    method: Optional[str] = None
    status_code: Optional[int] = None
    timing: TransactionTiming = Field(default_factory=TransactionTiming)
    transfer_size: TransferSize = Field(default_factory=TransferSize)
    network_protocol: Optional[str] = None
    is_reused_connection: bool = False
    is_proxy_connection: bool = False


class Metrics(BaseModel):
    """
    Timing and transfer statistics gathered for a task.

    Attributes:
        task_start: When the task started
        duration: Task duration in seconds
        redirect_count: Number of redirects followed
        transactions: Per-hop metrics in the order they happened
    """
    model_config = ConfigDict(frozen=True)

    task_start: Optional[datetime] = None
    duration: Optional[float] = None
    redirect_count: int = 0
    transactions: tuple[TransactionMetrics, ...] = ()

    @property
    def total_transfer_size(self) -> TransferSize:
        total = TransferSize()
        for transaction in self.transactions:
            total = total.merged(transaction.transfer_size)
        return total
