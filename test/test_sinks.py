import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pulse_netlog.events.collector import TaskCollector, TaskState
from pulse_netlog.events.events import NetworkEventType, TaskCompletedEvent, TaskProgressEvent
from pulse_netlog.events.sink import CallbackSink, LogSink, NullSink, SinkRegistry
from pulse_netlog.models.error import ResponseError
from pulse_netlog.models.request import Request
from pulse_netlog.models.response import Response
from pulse_netlog.models.task import NetworkTask
from pulse_netlog.network_logger import NetworkLogger

REQUEST = Request(url="https://api.example.com/items", method="GET")


def completed(status_code=200, error=None):
    return TaskCompletedEvent(
        task_id="task-1",
        original_request=REQUEST,
        response=Response(status_code=status_code),
        error=error,
        response_body=b"[]",
    )


class TestLogSink:
    """Events written to the logging system."""

    def test_success_logged_at_info(self, caplog):
        sink = LogSink(logger_name="test.network")
        with caplog.at_level(logging.DEBUG, logger="test.network"):
            sink.handle(completed())
        [record] = caplog.records
        assert record.levelno == logging.INFO
        assert "[task_completed]" in record.message
        assert "status=200" in record.message
        assert "bytes=2" in record.message

    def test_failure_logged_at_warning(self, caplog):
        sink = LogSink(logger_name="test.network")
        error = ResponseError.from_exception(TimeoutError("read timed out"))
        with caplog.at_level(logging.DEBUG, logger="test.network"):
            sink.handle(completed(error=error))
            sink.handle(completed(status_code=503))
        assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.WARNING]
        assert "error=timed_out" in caplog.records[0].message

    def test_progress_logged_at_debug(self, caplog):
        sink = LogSink(logger_name="test.network")
        with caplog.at_level(logging.INFO, logger="test.network"):
            sink.handle(TaskProgressEvent(task_id="1", url=REQUEST.url))
        assert caplog.records == []

    def test_json_format(self, caplog):
        sink = LogSink(logger_name="test.network", format_json=True)
        with caplog.at_level(logging.INFO, logger="test.network"):
            sink.handle(completed())
        payload = json.loads(caplog.records[0].message)
        assert payload["event_type"] == "task_completed"
        assert payload["task_id"] == "task-1"


class TestSinkRegistry:
    """Fan-out to named sinks."""

    def test_fan_out_isolates_failures(self):
        received = []

        class Broken:
            def current_session_id(self):
                return ""

            def handle(self, event):
                raise RuntimeError("broken")

        registry = SinkRegistry(session_id="s")
        registry.register("broken", Broken())
        registry.register("callback", CallbackSink().add_callback(received.append))

        registry.handle(completed())
        assert len(received) == 1
        assert registry.current_session_id() == "s"

    def test_register_and_unregister(self):
        registry = SinkRegistry()
        null = NullSink()
        registry.register("null", null)
        assert registry.get("null") is null
        registry.unregister("null")
        assert registry.sinks == []


class TestCallbackSink:
    """Callback delivery."""

    def test_failing_callback_does_not_stop_others(self):
        received = []

        def broken(event):
            raise ValueError("nope")

        sink = CallbackSink()
        sink.add_callback(broken).add_callback(received.append)
        sink.handle(completed())
        assert len(received) == 1

        sink.remove_callback(received.append)
        sink.handle(completed())
        assert len(received) == 1


class TestTaskCollector:
    """Aggregation into task summaries."""

    def setup_method(self):
        self.collector = TaskCollector(session_id="collector")
        self.network_logger = NetworkLogger(sink=self.collector)

    def run_task(self, url, status_code=200, error=None):
        task = NetworkTask(original_request=Request(url=url, method="post"))
        self.network_logger.log_task_created(task)
        self.network_logger.log_progress(task, 5, 10)
        self.network_logger.log_data_received(task, b"hello")
        task.response = Response(url=url, status_code=status_code)
        self.network_logger.log_task_completed(task, error)
        return task

    def test_summary(self):
        self.run_task("https://api.example.com/items")

        [summary] = self.collector.all_tasks()
        assert summary.url == "https://api.example.com/items"
        assert summary.method == "POST"
        assert summary.state == TaskState.SUCCESS
        assert summary.status_code == 200
        assert summary.completed_unit_count == 5
        assert summary.total_unit_count == 10
        assert summary.response_body_size == 5
        assert summary.duration_ms is not None
        assert [e.event_type for e in summary.events] == [
            NetworkEventType.TASK_CREATED,
            NetworkEventType.TASK_PROGRESS,
            NetworkEventType.TASK_COMPLETED,
        ]

    def test_failures(self):
        self.run_task("https://api.example.com/ok")
        self.run_task("https://api.example.com/missing", status_code=404)
        self.run_task("https://api.example.com/down", error=ConnectionError("refused"))

        failures = self.collector.get_failures()
        assert [f.url for f in failures] == [
            "https://api.example.com/missing",
            "https://api.example.com/down",
        ]
        assert failures[1].error_kind == "connectivity_failure"

    def test_pending_tasks_are_not_listed(self):
        task = NetworkTask(original_request=REQUEST)
        self.network_logger.log_task_created(task)
        assert self.collector.all_tasks() == []
        assert len(self.collector.get_events()) == 1

    def test_reset(self):
        self.run_task("https://api.example.com/items")
        self.collector.reset()
        assert self.collector.get_events() == []
        assert self.collector.all_tasks() == []

    def test_session_id_reaches_events(self):
        self.run_task("https://api.example.com/items")
        assert {e.session_id for e in self.collector.get_events(NetworkEventType.TASK_COMPLETED)} == {
            "collector",
        }
