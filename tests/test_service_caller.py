"""Tests for the execution boundary: transport, recorder and executor."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock

import pytest
import requests

from conftest import FakeSession, build_executor
from fuzz_models import ExpectedResponse, FuzzCase, FuzzingData, HeaderParam, ResponseCodeFamily
from service_caller import (
    CaseOutcome,
    FuzzResponse,
    ServiceCaller,
    TestCaseRecorder,
    TransportError,
)


def case(payload: str, expected=None, headers=None) -> FuzzCase:
    return FuzzCase("Fuzzer", "name", payload, "scenario", expected, headers or {})


class TestServiceCaller:
    def test_requires_base_url(self):
        with pytest.raises(ValueError):
            ServiceCaller(FakeSession(), base_url="")

    def test_mounts_connection_retry_adapter(self):
        session = FakeSession()
        ServiceCaller(session, base_url="http://api.test", connect_retries=3)
        adapter = session.mounted["http://"]
        assert adapter.max_retries.connect == 3
        assert adapter.max_retries.status == 0

    def test_post_sends_json_body(self):
        session = FakeSession(status=201, body='{"id": 1}')
        caller = ServiceCaller(session, base_url="http://api.test/v1", extra_headers={"X-Run": "1"})
        data = FuzzingData("/users", "POST", '{"name": "a"}', headers=(HeaderParam("X-Tenant", "t"),))

        resp = caller.call(data, case('{"name": "b"}'))

        call = session.calls[0]
        assert call.method == "POST"
        assert call.url == "http://api.test/v1/users"
        assert session.sent_json() == {"name": "b"}
        assert call.kwargs["headers"]["Content-Type"] == "application/json"
        assert call.kwargs["headers"]["X-Run"] == "1"
        assert call.kwargs["headers"]["X-Tenant"] == "t"
        assert resp.status_code == 201
        assert resp.body == '{"id": 1}'

    def test_case_headers_replace_contract_headers(self):
        session = FakeSession()
        caller = ServiceCaller(session, base_url="http://api.test")
        data = FuzzingData("/users", "POST", "{}", headers=(HeaderParam("X-Tenant", "t"),))
        caller.call(data, case("{}", headers={"X-Tenant": "\u0001t"}))
        assert session.calls[0].kwargs["headers"]["X-Tenant"] == "\u0001t"

    def test_get_sends_payload_as_query(self):
        session = FakeSession()
        caller = ServiceCaller(session, base_url="http://api.test")
        data = FuzzingData("/users", "GET", '{"q": "x"}', query_params={"page": "1"})
        caller.call(data, case('{"q": "y", "limit": 5}'))
        kwargs = session.calls[0].kwargs
        assert "data" not in kwargs
        assert kwargs["params"] == {"page": "1", "q": "y", "limit": "5"}

    @pytest.mark.parametrize("exc", [requests.ConnectionError("down"), requests.Timeout("slow")])
    def test_transport_failures_raise(self, exc):
        session = MagicMock()
        session.request.side_effect = exc
        caller = ServiceCaller(session, base_url="http://api.test")
        with pytest.raises(TransportError):
            caller.call(FuzzingData("/x", "POST", "{}"), case("{}"))


class TestFuzzResponse:
    def test_metrics(self):
        resp = FuzzResponse(200, "one two\nthree")
        assert resp.words == 3
        assert resp.lines == 2
        assert resp.size == len("one two\nthree")


class TestRecorder:
    def test_classification(self):
        recorder = TestCaseRecorder()
        data = FuzzingData("/x", "POST", "{}")
        four = ExpectedResponse(family=ResponseCodeFamily.FOURXX)

        assert recorder.report_result(data, case("{}", four), FuzzResponse(422)).outcome is CaseOutcome.PASS
        assert recorder.report_result(data, case("{}", four), FuzzResponse(500)).outcome is CaseOutcome.FAIL
        assert recorder.report_result(data, case("{}"), FuzzResponse(200)).outcome is CaseOutcome.SKIP
        assert recorder.summary() == {"pass": 1, "fail": 1, "skip": 1, "total": 3, "config_errors": 0}

    def test_exact_code(self):
        recorder = TestCaseRecorder()
        data = FuzzingData("/x", "POST", "{}")
        result = recorder.report_result(data, case("{}", ExpectedResponse.parse("400")), FuzzResponse(404))
        assert result.outcome is CaseOutcome.FAIL
        assert "expected 400" in result.reason

    def test_ids_are_sequential_across_threads(self):
        recorder = TestCaseRecorder()
        data = FuzzingData("/x", "POST", "{}")

        def work():
            for _ in range(50):
                recorder.skip(data, case("{}"), "skip")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(r.case_id for r in recorder.results) == list(range(1, 201))

    def test_body_limit(self):
        recorder = TestCaseRecorder(body_limit=5)
        result = recorder.skip(FuzzingData("/x", "POST"), case("x" * 10), "skip", FuzzResponse(200, "y" * 10))
        assert result.request_payload == "xxxxx"
        assert result.response_body == "yyyyy"

    def test_to_dict(self):
        recorder = TestCaseRecorder()
        result = recorder.report_error(FuzzingData("/x", "POST"), case("{}"), "boom")
        row = result.to_dict()
        assert row["result"] == "fail"
        assert row["reason"] == "boom"
        json.dumps(row)


class TestExecutor:
    def test_default_processor_classifies(self):
        executor = build_executor(FakeSession(status=400))
        result = executor.execute(FuzzingData("/x", "POST", "{}"), case("{}", ExpectedResponse.parse("4XX")))
        assert result.outcome is CaseOutcome.PASS

    def test_transport_error_recorded_as_failure(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")
        executor = build_executor(session)
        result = executor.execute(FuzzingData("/x", "POST", "{}"), case("{}", ExpectedResponse.parse("4XX")))
        assert result.outcome is CaseOutcome.FAIL
        assert "Transport error" in result.reason

    def test_custom_processor(self):
        executor = build_executor(FakeSession(status=500))
        seen = []

        def processor(data, fuzz_case, response):
            seen.append(response.status_code)
            return executor.recorder.skip(data, fuzz_case, "custom")

        result = executor.execute(FuzzingData("/x", "POST", "{}"), case("{}"), processor)
        assert seen == [500]
        assert result.outcome is CaseOutcome.SKIP
