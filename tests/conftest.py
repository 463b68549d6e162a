"""
Pytest configuration and shared fixtures for APIFUZZ tests.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Callable, List, Optional, Tuple

import pytest
import requests

from fuzz_models import FieldSchema, FuzzingData, HeaderParam
from service_caller import Executor, ServiceCaller, TestCaseRecorder


def make_response(status: int = 200, body: str = "") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers["Content-Type"] = "application/json"
    return resp


class FakeSession:
    """Stands in for ``requests.Session``; records calls, answers from a script.

    ``responder`` receives ``(method, url, kwargs)`` and returns ``(status, body)``.
    """

    def __init__(self, status: int = 200, body: str = "",
                 responder: Optional[Callable[[str, str, dict], Tuple[int, str]]] = None):
        self.status = status
        self.body = body
        self.responder = responder
        self.calls: List[SimpleNamespace] = []
        self.mounted = {}
        self.headers = {}

    def mount(self, prefix: str, adapter: Any) -> None:
        self.mounted[prefix] = adapter

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        self.calls.append(SimpleNamespace(method=method, url=url, kwargs=kwargs))
        if self.responder is not None:
            status, body = self.responder(method, url, kwargs)
        else:
            status, body = self.status, self.body
        return make_response(status, body)

    def sent_json(self, index: int = -1) -> Any:
        """Decode the body of a recorded call."""
        return json.loads(self.calls[index].kwargs["data"].decode("utf-8"))


@pytest.fixture
def fake_session() -> FakeSession:
    """Session answering 200 with an empty body."""
    return FakeSession()


@pytest.fixture
def recorder() -> TestCaseRecorder:
    return TestCaseRecorder()


def build_executor(session: FakeSession, recorder: Optional[TestCaseRecorder] = None) -> Executor:
    caller = ServiceCaller(session, base_url="http://api.test", timeout=1.0)
    return Executor(caller, recorder or TestCaseRecorder())


@pytest.fixture
def executor(fake_session: FakeSession, recorder: TestCaseRecorder) -> Executor:
    return build_executor(fake_session, recorder)


@pytest.fixture
def user_data() -> FuzzingData:
    """POST /users with one required and one optional string, an integer and a nested object."""
    payload = json.dumps({"name": "john", "nick": "jj", "age": 30, "address": {"street": "Main"}})
    return FuzzingData(
        contract_path="/users",
        method="POST",
        payload=payload,
        field_schemas={
            "name": FieldSchema(type="string", required=True),
            "nick": FieldSchema(type="string"),
            "age": FieldSchema(type="integer", required=True),
            "address": FieldSchema(type="object"),
            "address#street": FieldSchema(type="string", format="street"),
            "ghost": FieldSchema(type="string"),
        },
        headers=(HeaderParam("X-Request-Id", "abc", True), HeaderParam("X-Tenant", "t1")),
    )
