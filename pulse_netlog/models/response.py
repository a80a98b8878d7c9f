from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pulse_netlog.models.request import FrozenHeaders, coerce_headers, redact_headers
from pulse_netlog.util.const import REDACTED_HEADER_VALUE


class Response(BaseModel):
    """Snapshot of the HTTP response headers received for a task."""
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=FrozenHeaders)

    @field_validator('headers', mode='before')
    @classmethod
    def stringify_headers(cls, value):
        return coerce_headers(value)

    @field_validator('headers', mode='after')
    @classmethod
    def freeze_headers(cls, value: dict[str, str]) -> dict[str, str]:
        return FrozenHeaders(value)

    def _header(self, name: str) -> Optional[str]:
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    @property
    def content_type(self) -> Optional[str]:
        value = self._header('Content-Type')
        if value is None:
            return None
        return value.split(';', 1)[0].strip().lower() or None

    @property
    def expected_content_length(self) -> Optional[int]:
        value = self._header('Content-Length')
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    @property
    def is_success(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 400

    def redacting_sensitive_headers(
        self, names: Iterable[str], marker: str = REDACTED_HEADER_VALUE
    ) -> 'Response':
        return self.model_copy(update={'headers': redact_headers(self.headers, names, marker)})
