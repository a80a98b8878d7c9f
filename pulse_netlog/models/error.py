"""
Structured transport and decoding errors.

Exceptions raised by the HTTP client or by response decoding are converted
into a serializable ResponseError so that a completed task keeps the error
classification after it leaves the process. The classification is stored
as a tagged union keyed by ``kind``.
"""

import asyncio
import json
import socket
import ssl
from typing import Annotated, Literal, Optional, Union

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class DecodingContext(BaseModel):
    """Where in the decoded document the failure happened."""
    model_config = ConfigDict(frozen=True)

    coding_path: tuple[Union[int, str], ...] = ()
    debug_description: str = ''


class Cancelled(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['cancelled'] = 'cancelled'


class TimedOut(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['timed_out'] = 'timed_out'


class ConnectivityFailure(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['connectivity_failure'] = 'connectivity_failure'
    reason: str = ''


class TLSFailure(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['tls_failure'] = 'tls_failure'
    reason: str = ''


class TypeMismatch(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['type_mismatch'] = 'type_mismatch'
    type: str
    context: DecodingContext


class KeyNotFound(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['key_not_found'] = 'key_not_found'
    key: Union[int, str]
    context: DecodingContext


class ValueNotFound(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['value_not_found'] = 'value_not_found'
    type: str
    context: DecodingContext


class DataCorrupted(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal['data_corrupted'] = 'data_corrupted'
    context: DecodingContext


TransportError = Annotated[
    Union[
        Cancelled,
        TimedOut,
        ConnectivityFailure,
        TLSFailure,
        TypeMismatch,
        KeyNotFound,
        ValueNotFound,
        DataCorrupted,
    ],
    Field(discriminator='kind'),
]

DECODING_KINDS = frozenset({'type_mismatch', 'key_not_found', 'value_not_found', 'data_corrupted'})

# pydantic error types -> the Python type name reported in a type mismatch
_PYDANTIC_TYPE_NAMES = {
    'string': 'str',
    'int': 'int',
    'float': 'float',
    'bool': 'bool',
    'dict': 'dict',
    'list': 'list',
    'tuple': 'tuple',
    'set': 'set',
    'bytes': 'bytes',
    'model': 'object',
    'model_attributes': 'object',
    'datetime': 'datetime',
    'date': 'date',
    'uuid': 'UUID',
}


def _type_name(error_type: str) -> str:
    for suffix in ('_type', '_parsing'):
        if error_type.endswith(suffix):
            base = error_type[:-len(suffix)]
            return _PYDANTIC_TYPE_NAMES.get(base, base)
    return error_type


def _classify_validation_error(exc: ValidationError):
    errors = exc.errors()
    if not errors:
        return DataCorrupted(context=DecodingContext(debug_description=str(exc)))
    first = errors[0]
    error_type = first.get('type', '')
    loc = list(first.get('loc', ()))
    message = first.get('msg', '')

    if error_type == 'missing' and loc:
        return KeyNotFound(
            key=loc[-1],
            context=DecodingContext(coding_path=loc[:-1], debug_description=message),
        )
    if error_type.endswith('_type') or error_type.endswith('_parsing'):
        context = DecodingContext(coding_path=loc, debug_description=message)
        if first.get('input', ...) is None:
            return ValueNotFound(type=_type_name(error_type), context=context)
        return TypeMismatch(type=_type_name(error_type), context=context)
    return DataCorrupted(context=DecodingContext(coding_path=loc, debug_description=message))


def classify_exception(exc: BaseException):
    """Map an exception onto a TransportError variant, or None if unknown."""
    if isinstance(exc, asyncio.CancelledError):
        return Cancelled()
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return TimedOut()
    if isinstance(exc, (ssl.SSLError, aiohttp.ClientSSLError)):
        return TLSFailure(reason=str(exc))
    if isinstance(exc, (aiohttp.ClientConnectionError, ConnectionError, socket.gaierror)):
        return ConnectivityFailure(reason=str(exc))
    if isinstance(exc, ValidationError):
        return _classify_validation_error(exc)
    if isinstance(exc, (json.JSONDecodeError, UnicodeDecodeError)):
        return DataCorrupted(context=DecodingContext(debug_description=str(exc)))
    return None


def _error_code(exc: BaseException) -> int:
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status
    errno = getattr(exc, 'errno', None)
    return errno if isinstance(errno, int) else 0


class ResponseError(BaseModel):
    """
    Serializable description of why a task failed.

    Attributes:
        code: Numeric code (HTTP status, errno, or 0)
        domain: Fully qualified exception class name
        debug_description: Human readable message from the exception
        error: Structured classification; None when unclassified
    """
    model_config = ConfigDict(frozen=True)

    code: int = 0
    domain: str = ''
    debug_description: str = ''
    error: Optional[TransportError] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> 'ResponseError':
        exc_type = type(exc)
        return cls(
            code=_error_code(exc),
            domain=f'{exc_type.__module__}.{exc_type.__qualname__}',
            debug_description=str(exc) or repr(exc),
            error=classify_exception(exc),
        )

    @property
    def kind(self) -> str:
        return self.error.kind if self.error is not None else 'unclassified'

    @property
    def is_decoding_error(self) -> bool:
        return self.kind in DECODING_KINDS

    @property
    def is_cancelled(self) -> bool:
        return self.kind == 'cancelled'
