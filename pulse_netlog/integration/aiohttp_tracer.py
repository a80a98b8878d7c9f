"""
aiohttp integration.

AiohttpNetworkTracer turns aiohttp client tracing signals into network
logger callbacks. Add its trace config to a ClientSession and issue
requests through ``request`` or ``fetch_json`` to have the full response
body recorded:

    tracer = AiohttpNetworkTracer(network_logger)
    async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
        async with tracer.request(session, "GET", "https://api.example.com/repos") as response:
            ...

Requests made on the traced session without these helpers are logged as
well, but they complete as soon as the response headers arrive since
aiohttp does not signal the end of the body. Body chunks read afterwards
reach the logger after completion and are ignored there.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, AsyncIterator, Dict, List, Optional, Type
from urllib.parse import urljoin

import aiohttp
from pydantic import BaseModel, ValidationError

from pulse_netlog.integration.producer import TaskEventConsumer
from pulse_netlog.models.metrics import Metrics, TransactionMetrics, TransactionTiming, TransferSize
from pulse_netlog.models.request import Request
from pulse_netlog.models.response import Response
from pulse_netlog.models.task import NetworkTask, TaskType

logger = logging.getLogger(__name__)

_HANDLE_KEY = "pulse_netlog"


def _now() -> datetime:
    return datetime.now(UTC)


def _redirect_method(status: int, method: str) -> str:
    """Method aiohttp uses for the hop that follows a redirect response."""
    if status == 303 and method != "HEAD":
        return "GET"
    if status in (301, 302) and method == "POST":
        return "GET"
    return method


@dataclass
class _Hop:
    """Mutable draft of one transaction, frozen into TransactionMetrics at completion."""
    url: Optional[str]
    method: Optional[str]
    timing: Dict[str, datetime] = field(default_factory=dict)
    status_code: Optional[int] = None
    request_body_bytes_sent: int = 0
    response_body_bytes_received: int = 0
    network_protocol: Optional[str] = None
    is_reused_connection: bool = False

    def mark(self, *names: str) -> None:
        now = _now()
        for name in names:
            self.timing[name] = now

    def snapshot(self) -> TransactionMetrics:
        return TransactionMetrics(
            url=self.url,
            method=self.method,
            status_code=self.status_code,
            timing=TransactionTiming(**self.timing),
            transfer_size=TransferSize(
                request_body_bytes_sent=self.request_body_bytes_sent,
                response_body_bytes_received=self.response_body_bytes_received,
            ),
            network_protocol=self.network_protocol,
            is_reused_connection=self.is_reused_connection,
        )


@dataclass
class _TraceState:
    """Per-request tracing state, kept on aiohttp's trace context."""
    task: NetworkTask
    task_start: datetime
    hops: List[_Hop] = field(default_factory=list)
    redirect_count: int = 0
    received: int = 0
    finished: bool = False

    @property
    def hop(self) -> Optional[_Hop]:
        return self.hops[-1] if self.hops else None

    def start_hop(self, request: Request) -> _Hop:
        hop = _Hop(url=request.url, method=request.method)
        hop.mark("fetch_start")
        self.hops.append(hop)
        return hop


@dataclass
class _TracedRequest:
    """Handle shared between a helper call and the trace callbacks of its request."""
    state: Optional[_TraceState] = None


class AiohttpNetworkTracer:
    """
    Feed aiohttp client requests into a network logger.

    Each top-level request becomes one task; redirects add transactions to
    the task's metrics and update its current request.
    """

    def __init__(self, consumer: TaskEventConsumer, report_progress: bool = True):
        """
        Args:
            consumer: Receives the callbacks, usually a NetworkLogger
            report_progress: Emit progress for each received body chunk
        """
        self._consumer = consumer
        self._report_progress = report_progress

    def trace_config(self) -> aiohttp.TraceConfig:
        """Create a TraceConfig to pass to ``ClientSession(trace_configs=...)``."""
        trace_config = aiohttp.TraceConfig()
        trace_config.on_request_start.append(self._on_request_start)
        trace_config.on_request_chunk_sent.append(self._on_request_chunk_sent)
        trace_config.on_dns_resolvehost_start.append(self._on_dns_resolvehost_start)
        trace_config.on_dns_resolvehost_end.append(self._on_dns_resolvehost_end)
        trace_config.on_connection_create_start.append(self._on_connection_create_start)
        trace_config.on_connection_create_end.append(self._on_connection_create_end)
        trace_config.on_connection_reuseconn.append(self._on_connection_reuseconn)
        trace_config.on_request_headers_sent.append(self._on_request_headers_sent)
        trace_config.on_request_redirect.append(self._on_request_redirect)
        trace_config.on_request_end.append(self._on_request_end)
        trace_config.on_response_chunk_received.append(self._on_response_chunk_received)
        trace_config.on_request_exception.append(self._on_request_exception)
        return trace_config

    # Helpers -----------------------------------------------------------------

    @asynccontextmanager
    async def request(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        **kwargs,
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """
        Issue a request whose task completes when the block exits.

        The body is read before the response is yielded. An exception
        raised inside the block completes the task with that error.
        """
        handle = _TracedRequest()
        try:
            async with session.request(
                method, url, trace_request_ctx={_HANDLE_KEY: handle}, **kwargs
            ) as response:
                await response.read()
                yield response
        except BaseException as e:
            self._finish(handle.state, e)
            raise
        self._finish(handle.state, None)

    async def fetch_json(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        model: Optional[Type[BaseModel]] = None,
        **kwargs,
    ) -> Any:
        """
        Issue a request and decode its JSON body.

        Loading and decoding are reported separately, so a logger that
        waits for decoding records decoding failures on the task.

        Args:
            session: Traced client session
            method: HTTP method
            url: Request URL
            model: Pydantic model to validate the body with, plain JSON if None

        Returns:
            The decoded body

        Raises:
            ValueError: If decoding fails (json.JSONDecodeError or
                pydantic.ValidationError)
        """
        handle = _TracedRequest()
        try:
            async with session.request(
                method, url, trace_request_ctx={_HANDLE_KEY: handle}, **kwargs
            ) as response:
                body = await response.read()
        except BaseException as e:
            self._finish(handle.state, e)
            raise
        self._finish(handle.state, None)

        task = handle.state.task if handle.state else None
        try:
            if model is not None:
                payload = model.model_validate_json(body)
            else:
                payload = json.loads(body)
        except (ValidationError, ValueError) as e:
            if task is not None:
                self._consumer.log_decoding_completed(task, e)
            raise
        if task is not None:
            self._consumer.log_decoding_completed(task, None)
        return payload


    # Internals ---------------------------------------------------------------

    @staticmethod
    def _state(trace_config_ctx) -> Optional[_TraceState]:
        return getattr(trace_config_ctx, "pulse_state", None)

    @staticmethod
    def _hop(trace_config_ctx) -> Optional[_Hop]:
        state = getattr(trace_config_ctx, "pulse_state", None)
        return state.hop if state is not None else None

    @staticmethod
    def _handle(trace_config_ctx) -> Optional[_TracedRequest]:
        holder = getattr(trace_config_ctx, "trace_request_ctx", None)
        if isinstance(holder, Mapping):
            handle = holder.get(_HANDLE_KEY)
            if isinstance(handle, _TracedRequest):
                return handle
        return None

    def _finish(self, state: Optional[_TraceState], error: Optional[BaseException]) -> None:
        if state is None or state.finished:
            return
        state.finished = True
        now = _now()
        if state.hop is not None:
            state.hop.timing.setdefault("response_end", now)
        metrics = Metrics(
            task_start=state.task_start,
            duration=(now - state.task_start).total_seconds(),
            redirect_count=state.redirect_count,
            transactions=[hop.snapshot() for hop in state.hops],
        )
        self._consumer.log_metrics(state.task, metrics)
        self._consumer.log_task_completed(state.task, error)

    # Trace callbacks -----------------------------------------------------------

    async def _on_request_start(self, session, trace_config_ctx, params) -> None:
        request = Request(url=str(params.url), method=params.method, headers=params.headers)
        task = NetworkTask(original_request=request, current_request=request)
        state = _TraceState(task=task, task_start=_now())
        state.start_hop(request)
        trace_config_ctx.pulse_state = state
        handle = self._handle(trace_config_ctx)
        if handle is not None:
            handle.state = state
        logger.debug("Tracing %s %s as %s", request.method, request.url, task.token)
        self._consumer.log_task_created(task)

    async def _on_request_chunk_sent(self, session, trace_config_ctx, params) -> None:
        state = self._state(trace_config_ctx)
        if state is None:
            return
        chunk = bytes(params.chunk)
        state.task.request_body_chunks.append(chunk)
        state.task.task_type = TaskType.UPLOAD
        if state.hop is not None:
            state.hop.request_body_bytes_sent += len(chunk)
            state.hop.mark("request_end")

    async def _on_dns_resolvehost_start(self, session, trace_config_ctx, params) -> None:
        hop = self._hop(trace_config_ctx)
        if hop is not None:
            hop.mark("domain_lookup_start")

    async def _on_dns_resolvehost_end(self, session, trace_config_ctx, params) -> None:
        hop = self._hop(trace_config_ctx)
        if hop is not None:
            hop.mark("domain_lookup_end")

    async def _on_connection_create_start(self, session, trace_config_ctx, params) -> None:
        hop = self._hop(trace_config_ctx)
        if hop is not None:
            hop.mark("connect_start")

    async def _on_connection_create_end(self, session, trace_config_ctx, params) -> None:
        hop = self._hop(trace_config_ctx)
        if hop is not None:
            hop.mark("connect_end")

    async def _on_connection_reuseconn(self, session, trace_config_ctx, params) -> None:
        hop = self._hop(trace_config_ctx)
        if hop is not None:
            hop.is_reused_connection = True

    async def _on_request_headers_sent(self, session, trace_config_ctx, params) -> None:
        state = self._state(trace_config_ctx)
        if state is None or state.hop is None:
            return
        # The request as it went on the wire for this hop
        state.task.current_request = Request(
            url=str(params.url), method=params.method, headers=params.headers,
        )
        state.hop.mark("request_start", "request_end")

    async def _on_request_redirect(self, session, trace_config_ctx, params) -> None:
        state = self._state(trace_config_ctx)
        if state is None:
            return
        state.redirect_count += 1
        response = params.response
        if state.hop is not None:
            state.hop.status_code = response.status
            state.hop.mark("response_start", "response_end")

        location = response.headers.get("Location") or response.headers.get("URI")
        if not location:
            return
        request = Request(
            url=urljoin(str(params.url), location),
            method=_redirect_method(response.status, params.method),
        )
        state.task.current_request = request
        state.start_hop(request)

    async def _on_request_end(self, session, trace_config_ctx, params) -> None:
        state = self._state(trace_config_ctx)
        if state is None:
            return
        response = params.response
        state.task.response = Response(
            url=str(response.url),
            status_code=response.status,
            headers=response.headers,
        )
        if state.hop is not None:
            state.hop.status_code = response.status
            state.hop.mark("response_start")
            if response.version is not None:
                state.hop.network_protocol = f"http/{response.version.major}.{response.version.minor}"

        handle = self._handle(trace_config_ctx)
        if handle is None:
            self._finish(state, None)

    async def _on_response_chunk_received(self, session, trace_config_ctx, params) -> None:
        state = self._state(trace_config_ctx)
        if state is None:
            return
        chunk = bytes(params.chunk)
        state.received += len(chunk)
        if state.hop is not None and not state.finished:
            state.hop.response_body_bytes_received += len(chunk)
        self._consumer.log_data_received(state.task, chunk)
        if self._report_progress:
            total = -1
            if state.task.response is not None:
                total = state.task.response.expected_content_length or -1
            self._consumer.log_progress(state.task, state.received, total)

    async def _on_request_exception(self, session, trace_config_ctx, params) -> None:
        self._finish(self._state(trace_config_ctx), params.exception)
