from typing import Iterable, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pulse_netlog.util.const import REDACTED_HEADER_VALUE


class FrozenHeaders(dict):
    """Header mapping of a snapshot. Reads work like a dict, writes raise TypeError."""

    def _readonly(self, *args, **kwargs):
        raise TypeError("snapshot headers are read-only")

    __setitem__ = _readonly
    __delitem__ = _readonly
    __ior__ = _readonly
    clear = _readonly
    pop = _readonly
    popitem = _readonly
    setdefault = _readonly
    update = _readonly

    def __reduce__(self):
        return type(self), (dict(self),)


def coerce_headers(value) -> dict[str, str]:
    """
    Turn a header mapping into a plain str -> str dict.

    Multidicts (aiohttp's CIMultiDictProxy and friends) can repeat a name;
    repeated values are joined with ", " so that none of them is lost.
    """
    if value is None:
        return {}
    if hasattr(value, 'getall'):
        merged: dict[str, str] = {}
        names: dict[str, str] = {}
        for key, item in value.items():
            name = names.setdefault(str(key).lower(), str(key))
            merged[name] = f'{merged[name]}, {item}' if name in merged else str(item)
        return merged
    return {str(k): str(v) for k, v in dict(value).items()}


def redact_headers(
    headers: dict[str, str],
    names: Iterable[str],
    marker: str = REDACTED_HEADER_VALUE,
) -> FrozenHeaders:
    """Replace the values of the named headers, matching names case-insensitively."""
    sensitive = {name.lower() for name in names}
    return FrozenHeaders({
        key: (marker if key.lower() in sensitive else value)
        for key, value in headers.items()
    })


class Request(BaseModel):
    """
    Snapshot of an outgoing HTTP request.

    The snapshot is taken from the transport when a callback fires and never
    changes afterwards; redaction returns a new snapshot.
    """
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    method: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=FrozenHeaders)
    timeout: Optional[float] = None
    allow_redirects: bool = True

    @field_validator('method')
    @classmethod
    def normalize_method(cls, value: Optional[str]) -> Optional[str]:
        return value.upper().strip() if value else value

    @field_validator('headers', mode='before')
    @classmethod
    def stringify_headers(cls, value):
        return coerce_headers(value)

    @field_validator('headers', mode='after')
    @classmethod
    def freeze_headers(cls, value: dict[str, str]) -> dict[str, str]:
        return FrozenHeaders(value)

    @property
    def host(self) -> Optional[str]:
        if not self.url:
            return None
        return urlsplit(self.url).hostname

    def redacting_sensitive_headers(
        self, names: Iterable[str], marker: str = REDACTED_HEADER_VALUE
    ) -> 'Request':
        """Return a copy with the named headers' values replaced by a marker."""
        return self.model_copy(update={'headers': redact_headers(self.headers, names, marker)})
