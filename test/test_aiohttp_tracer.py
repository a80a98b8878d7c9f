import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from pydantic import BaseModel, ValidationError

from pulse_netlog.events.collector import TaskCollector
from pulse_netlog.events.events import NetworkEventType
from pulse_netlog.integration.aiohttp_tracer import AiohttpNetworkTracer, _redirect_method
from pulse_netlog.integration.producer import TaskEventConsumer
from pulse_netlog.models.task import TaskType
from pulse_netlog.network_logger import NetworkLogger

REPO = {"id": 1296269, "name": "Hello-World"}


class Repo(BaseModel):
    id: str
    name: str


async def get_repo(request):
    return web.json_response(REPO)


async def redirect(request):
    raise web.HTTPFound("/repo")


async def echo(request):
    return web.Response(body=await request.read())


async def start_server() -> TestServer:
    app = web.Application()
    app.router.add_get("/repo", get_repo)
    app.router.add_get("/redirect", redirect)
    app.router.add_post("/echo", echo)
    app.router.add_post("/submit", redirect)
    server = TestServer(app)
    await server.start_server()
    return server


class TestAiohttpNetworkTracer:
    """Requests made on a traced aiohttp session."""

    def setup_method(self):
        self.collector = TaskCollector()

    def make_tracer(self, **options):
        self.network_logger = NetworkLogger(sink=self.collector, **options)
        return AiohttpNetworkTracer(self.network_logger)

    def completed(self):
        return self.collector.get_events(NetworkEventType.TASK_COMPLETED)

    def test_logger_satisfies_consumer_protocol(self):
        assert isinstance(NetworkLogger(sink=self.collector), TaskEventConsumer)

    @pytest.mark.asyncio
    async def test_request_is_logged(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                async with tracer.request(session, "GET", server.make_url("/repo")) as response:
                    assert response.status == 200
        finally:
            await server.close()

        assert len(self.collector.get_events(NetworkEventType.TASK_CREATED)) == 1
        [event] = self.completed()
        assert event.status_code == 200
        assert event.error is None
        assert event.original_request.method == "GET"
        assert event.original_request.url.endswith("/repo")
        assert event.response.content_type == "application/json"
        assert b'"Hello-World"' in event.response_body
        assert event.metrics is not None
        assert len(event.metrics.transactions) == 1
        assert event.metrics.transactions[0].timing.fetch_start is not None
        assert event.metrics.transactions[0].status_code == 200
        assert event.metrics.duration is not None
        assert self.network_logger.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_redirect_adds_transaction(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                async with tracer.request(session, "GET", server.make_url("/redirect")):
                    pass
        finally:
            await server.close()

        [event] = self.completed()
        assert event.original_request.url.endswith("/redirect")
        assert event.current_request.url.endswith("/repo")
        assert event.metrics.redirect_count == 1
        assert [t.status_code for t in event.metrics.transactions] == [302, 200]
        assert event.metrics.transactions[0].url.endswith("/redirect")
        assert event.metrics.transactions[1].url.endswith("/repo")
        assert event.metrics.transactions[1].timing.response_start is not None

    @pytest.mark.asyncio
    async def test_post_redirect_switches_to_get(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                async with tracer.request(session, "POST", server.make_url("/submit"), data=b"form"):
                    pass
        finally:
            await server.close()

        [event] = self.completed()
        assert event.original_request.method == "POST"
        assert event.current_request.method == "GET"
        assert event.current_request.url.endswith("/repo")
        assert [t.method for t in event.metrics.transactions] == ["POST", "GET"]

    @pytest.mark.parametrize("status, method, expected", [
        (301, "POST", "GET"),
        (302, "POST", "GET"),
        (302, "PUT", "PUT"),
        (303, "PUT", "GET"),
        (303, "HEAD", "HEAD"),
        (307, "POST", "POST"),
    ])
    def test_redirect_method(self, status, method, expected):
        assert _redirect_method(status, method) == expected

    @pytest.mark.asyncio
    async def test_upload_body_is_captured(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                async with tracer.request(session, "POST", server.make_url("/echo"), data=b"payload"):
                    pass
        finally:
            await server.close()

        [event] = self.completed()
        assert event.task_type == TaskType.UPLOAD
        assert event.request_body == b"payload"
        assert event.response_body == b"payload"

    @pytest.mark.asyncio
    async def test_fetch_json(self):
        tracer = self.make_tracer(is_waiting_for_decoding=True)
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                payload = await tracer.fetch_json(session, "GET", server.make_url("/repo"))
        finally:
            await server.close()

        assert payload == REPO
        [event] = self.completed()
        assert event.error is None

    @pytest.mark.asyncio
    async def test_decoding_failure_is_recorded(self):
        tracer = self.make_tracer(is_waiting_for_decoding=True)
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                with pytest.raises(ValidationError):
                    await tracer.fetch_json(session, "GET", server.make_url("/repo"), model=Repo)
        finally:
            await server.close()

        [event] = self.completed()
        assert event.status_code == 200
        assert event.error.kind == "type_mismatch"
        assert event.error.error.type == "str"
        assert event.error.error.context.coding_path == ("id",)

    @pytest.mark.asyncio
    async def test_exception_in_block_fails_task(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                with pytest.raises(RuntimeError):
                    async with tracer.request(session, "GET", server.make_url("/repo")):
                        raise RuntimeError("handler failed")
        finally:
            await server.close()

        [event] = self.completed()
        assert event.error.domain == "builtins.RuntimeError"
        assert event.error.kind == "unclassified"

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        tracer = self.make_tracer()
        server = await start_server()
        url = server.make_url("/repo")
        await server.close()

        async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
            with pytest.raises(aiohttp.ClientConnectionError):
                async with tracer.request(session, "GET", url):
                    pass

        [event] = self.completed()
        assert event.error.kind == "connectivity_failure"
        assert event.response is None
        assert self.network_logger.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_plain_request_completes_at_headers(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                async with session.get(server.make_url("/repo")) as response:
                    await response.read()
        finally:
            await server.close()

        [event] = self.completed()
        assert event.status_code == 200
        assert event.response_body == b""
        assert self.network_logger.pending_tasks == 0
        assert len(self.collector.get_events()) == 2

    @pytest.mark.asyncio
    async def test_fetch_json_completes_once_without_retired_window(self):
        tracer = self.make_tracer(retired_capacity=0)
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                await tracer.fetch_json(session, "GET", server.make_url("/repo"))
        finally:
            await server.close()

        assert len(self.completed()) == 1
        assert self.network_logger.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_event_metrics_are_a_snapshot(self):
        tracer = self.make_tracer()
        server = await start_server()
        try:
            async with aiohttp.ClientSession(trace_configs=[tracer.trace_config()]) as session:
                async with tracer.request(session, "GET", server.make_url("/repo")):
                    pass
        finally:
            await server.close()

        [event] = self.completed()
        with pytest.raises(ValidationError):
            event.metrics.redirect_count = 7
        with pytest.raises(TypeError):
            event.original_request.headers["X-Injected"] = "1"
        assert isinstance(event.metrics.transactions, tuple)
