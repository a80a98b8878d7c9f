import copy
import os
import pickle
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from pydantic import ValidationError

from pulse_netlog.models.metrics import Metrics, TransactionMetrics, TransferSize
from pulse_netlog.models.request import FrozenHeaders, Request, redact_headers
from pulse_netlog.models.response import Response
from pulse_netlog.models.task import NetworkTask, TaskToken


class TestHeaderRedaction:
    """Sensitive header values are replaced case-insensitively."""

    def test_request_redaction(self):
        request = Request(
            url="https://api.example.com",
            headers={"Authorization": "123", "Content-Size": "456"},
        )
        redacted = request.redacting_sensitive_headers(["authorization"])
        assert redacted.headers == {"Authorization": "<private>", "Content-Size": "456"}
        assert request.headers["Authorization"] == "123"

    def test_response_redaction(self):
        response = Response(status_code=200, headers={"Set-Cookie": "id=1", "Content-Type": "text/html"})
        redacted = response.redacting_sensitive_headers({"SET-COOKIE"})
        assert redacted.headers == {"Set-Cookie": "<private>", "Content-Type": "text/html"}

    def test_no_names_is_a_copy(self):
        headers = {"Authorization": "123"}
        assert redact_headers(headers, []) == headers


class TestRequestResponse:
    """Snapshot normalization."""

    def test_method_is_upper_cased(self):
        assert Request(url="https://pulse.com", method="post").method == "POST"

    def test_headers_are_stringified(self):
        request = Request(url="https://pulse.com", headers={"Content-Length": 12})
        assert request.headers == {"Content-Length": "12"}

    def test_request_host(self):
        assert Request(url="https://API.example.com:8443/v1").host == "api.example.com"
        assert Request().host is None

    def test_response_properties(self):
        response = Response(
            status_code=204,
            headers={"content-type": "Application/JSON; charset=utf-8", "Content-Length": "42"},
        )
        assert response.content_type == "application/json"
        assert response.expected_content_length == 42
        assert response.is_success
        assert not Response(status_code=500).is_success
        assert Response(headers={"Content-Length": "n/a"}).expected_content_length is None


class TestTaskAndMetrics:
    """Task tokens, request bodies and metric totals."""

    def test_tokens_are_unique(self):
        assert TaskToken.issue() != TaskToken.issue()
        assert NetworkTask().token != NetworkTask().token

    def test_buffered_body_wins_over_chunks(self):
        task = NetworkTask(request_body=b"full", request_body_chunks=[b"par", b"tial"])
        assert task.resolved_request_body() == b"full"
        assert NetworkTask(request_body_chunks=[b"par", b"tial"]).resolved_request_body() == b"partial"
        assert NetworkTask().resolved_request_body() is None

    def test_total_transfer_size(self):
        metrics = Metrics(transactions=[
            TransactionMetrics(transfer_size=TransferSize(request_body_bytes_sent=10, response_body_bytes_received=100)),
            TransactionMetrics(transfer_size=TransferSize(response_body_bytes_received=50)),
        ])
        total = metrics.total_transfer_size
        assert total.request_body_bytes_sent == 10
        assert total.response_body_bytes_received == 150


class TestSnapshotImmutability:
    """Snapshots and metrics cannot be changed once built."""

    def test_headers_are_read_only(self):
        request = Request(url="https://pulse.com", headers={"Accept": "*/*"})
        assert isinstance(request.headers, FrozenHeaders)
        with pytest.raises(TypeError):
            request.headers["Accept"] = "text/html"
        with pytest.raises(TypeError):
            del request.headers["Accept"]
        with pytest.raises(TypeError):
            request.headers.setdefault("Cookie", "id=1")
        assert isinstance(Response().headers, FrozenHeaders)

    def test_redacted_copy_is_read_only(self):
        request = Request(url="https://pulse.com", headers={"Authorization": "123"})
        redacted = request.redacting_sensitive_headers(["authorization"], marker="***")
        assert redacted.headers == {"Authorization": "***"}
        with pytest.raises(TypeError):
            redacted.headers["Authorization"] = "123"

    def test_frozen_headers_copy_and_serialize(self):
        request = Request(url="https://pulse.com", headers={"Accept": "*/*"})
        assert copy.deepcopy(request.headers) == {"Accept": "*/*"}
        assert pickle.loads(pickle.dumps(request.headers)) == {"Accept": "*/*"}
        assert request.model_copy(deep=True).headers == {"Accept": "*/*"}
        assert Request.model_validate_json(request.model_dump_json()) == request

    def test_metrics_are_frozen(self):
        metrics = Metrics(transactions=[TransactionMetrics(url="https://pulse.com")])
        assert isinstance(metrics.transactions, tuple)
        with pytest.raises(ValidationError):
            metrics.redirect_count = 3
        with pytest.raises(ValidationError):
            metrics.transactions[0].timing.fetch_start = None
        with pytest.raises(ValidationError):
            metrics.transactions[0].transfer_size.request_body_bytes_sent = 1


class TestRepeatedHeaders:
    """Multidict headers keep every value of a repeated name."""

    def test_repeated_values_are_joined(self):
        headers = CIMultiDictProxy(CIMultiDict([
            ("Set-Cookie", "a=1"),
            ("Content-Type", "text/html"),
            ("Set-Cookie", "b=2"),
        ]))
        response = Response(status_code=200, headers=headers)
        assert response.headers == {"Set-Cookie": "a=1, b=2", "Content-Type": "text/html"}

    def test_request_accepts_multidict(self):
        request = Request(url="https://pulse.com", headers=CIMultiDict([("Accept", "a"), ("accept", "b")]))
        assert list(request.headers.values()) == ["a, b"]
