########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from fuzz_models import BODYLESS_METHODS, FuzzCase, FuzzingData
from json_utils import parse_payload

logger = logging.getLogger(__name__)


class TransportError(Exception):
    pass


#================funtion _headers_to_list normalize headers to list of tuples ##########
def _headers_to_list(hdrs) -> List[tuple]:
    if hasattr(hdrs, "getlist"):
        return [(k, v) for k in hdrs for v in hdrs.getlist(k)]
    try:
        return [(str(k), str(v)) for k, v in hdrs.items()]
    except Exception:
        return []


@dataclass
class FuzzResponse:
    status_code: int
    body: str = ""
    headers: List[tuple] = field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def size(self) -> int:
        return len(self.body.encode("utf-8", "replace"))

    @property
    def words(self) -> int:
        return len(self.body.split())

    @property
    def lines(self) -> int:
        return len(self.body.splitlines())

    @classmethod
    def from_requests(cls, resp: requests.Response, elapsed: float = 0.0) -> "FuzzResponse":
        try:
            body = resp.text or ""
        except Exception:
            body = (resp.content or b"").decode("utf-8", "replace")
        return cls(
            status_code=int(resp.status_code),
            body=body,
            headers=_headers_to_list(resp.headers),
            elapsed_ms=int(elapsed * 1000),
        )


class ServiceCaller:
    """Sends fuzz cases over a ``requests.Session``."""

    # ----------------------- Function __init__ ----------------------------#
    def __init__(
        self,
        session: requests.Session,
        *,
        base_url: str,
        timeout: float = 10.0,
        extra_headers: Optional[Mapping[str, str]] = None,
        connect_retries: int = 2,
    ) -> None:
        if session is None:
            raise ValueError("Session is required; pass an authenticated requests.Session.")
        if not base_url or not isinstance(base_url, str):
            raise ValueError("base_url is required")
        self.session = session
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.extra_headers = dict(extra_headers or {})
        # connection-level retries only; status codes are never retried
        retry = Retry(total=connect_retries, connect=connect_retries, read=0, status=0, backoff_factor=0.3)
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _build_url(self, path: str) -> str:
        if not path:
            return self.base_url
        if path.startswith(("http://", "https://")):
            return path
        return urljoin(self.base_url, path.lstrip("/"))

    # ----------------------- Function call ----------------------------#
    def call(self, data: FuzzingData, case: FuzzCase) -> FuzzResponse:
        method = data.method.upper()
        url = self._build_url(data.path)
        headers = {"Accept": "application/json"}
        headers.update(self.extra_headers)
        headers.update(case.headers or data.header_map())
        params = dict(data.query_params or {})
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.timeout}

        if method in BODYLESS_METHODS:
            body = _safe_json(case.payload)
            if isinstance(body, dict):
                params.update({k: v if isinstance(v, str) else json.dumps(v) for k, v in body.items()})
        else:
            headers.setdefault("Content-Type", "application/json")
            kwargs["data"] = (case.payload or "").encode("utf-8")
        if params:
            kwargs["params"] = params

        t0 = time.time()
        try:
            resp = self.session.request(method, url, **kwargs)
        except (requests.RequestException, ValueError, UnicodeError) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        return FuzzResponse.from_requests(resp, time.time() - t0)


def _safe_json(payload: str) -> Any:
    try:
        return parse_payload(payload)
    except ValueError:
        return None


class CaseOutcome(Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


@dataclass
class CaseResult:
    case_id: int
    fuzzer: str
    path: str
    method: str
    target: str
    scenario: str
    expected: str
    outcome: CaseOutcome
    reason: str = ""
    status_code: Optional[int] = None
    request_payload: str = ""
    response_body: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.case_id,
            "fuzzer": self.fuzzer,
            "path": self.path,
            "method": self.method,
            "target": self.target,
            "scenario": self.scenario,
            "expected": self.expected,
            "result": self.outcome.value,
            "reason": self.reason,
            "status_code": self.status_code,
            "request_payload": self.request_payload,
            "response_body": self.response_body,
            "timestamp": self.timestamp,
        }


class TestCaseRecorder:
    """Outcome classifier and result store; safe to share between threads."""

    __test__ = False

    def __init__(self, body_limit: int = 2048):
        self.body_limit = body_limit
        self.results: List[CaseResult] = []
        self.config_errors: List[str] = []
        self._lock = threading.Lock()

    @property
    def executed(self) -> int:
        with self._lock:
            return len(self.results)

    @property
    def errors(self) -> int:
        with self._lock:
            return sum(1 for r in self.results if r.outcome is CaseOutcome.FAIL)

    def _add(self, data: FuzzingData, case: FuzzCase, outcome: CaseOutcome, reason: str,
             response: Optional[FuzzResponse] = None) -> CaseResult:
        with self._lock:
            result = CaseResult(
                case_id=len(self.results) + 1,
                fuzzer=case.fuzzer,
                path=data.contract_path,
                method=data.method,
                target=case.target,
                scenario=case.scenario,
                expected=str(case.expected) if case.expected else "-",
                outcome=outcome,
                reason=reason,
                status_code=response.status_code if response else None,
                request_payload=(case.payload or "")[: self.body_limit],
                response_body=(response.body if response else "")[: self.body_limit],
            )
            self.results.append(result)
        log = logger.warning if outcome is CaseOutcome.FAIL else logger.debug
        log("%s %s %s [%s] %s: %s", outcome.value.upper(), data.method, data.contract_path, case.fuzzer, case.target, reason)
        return result

    # ----------------------- Function report_result ----------------------------#
    def report_result(self, data: FuzzingData, case: FuzzCase, response: FuzzResponse) -> CaseResult:
        if case.expected is None:
            return self._add(data, case, CaseOutcome.SKIP, "no expected response code", response)
        if case.expected.matches(response.status_code):
            reason = f"Response code {response.status_code} matches expected {case.expected}"
            return self._add(data, case, CaseOutcome.PASS, reason, response)
        reason = f"Unexpected response code {response.status_code}, expected {case.expected}"
        return self._add(data, case, CaseOutcome.FAIL, reason, response)

    def report_error(self, data: FuzzingData, case: FuzzCase, reason: str,
                     response: Optional[FuzzResponse] = None) -> CaseResult:
        return self._add(data, case, CaseOutcome.FAIL, reason, response)

    def skip(self, data: FuzzingData, case: FuzzCase, reason: str,
             response: Optional[FuzzResponse] = None) -> CaseResult:
        return self._add(data, case, CaseOutcome.SKIP, reason, response)

    def record_error(self, message: str) -> None:
        with self._lock:
            self.config_errors.append(message)

    def summary(self) -> Dict[str, int]:
        with self._lock:
            out = {o.value: 0 for o in CaseOutcome}
            for r in self.results:
                out[r.outcome.value] += 1
            out["total"] = len(self.results)
            out["config_errors"] = len(self.config_errors)
            return out


ResponseProcessor = Callable[[FuzzingData, FuzzCase, FuzzResponse], CaseResult]


class Executor:
    """Dispatches a case to the transport and routes the response to a classifier."""

    def __init__(self, caller: ServiceCaller, recorder: TestCaseRecorder):
        self.caller = caller
        self.recorder = recorder

    # ----------------------- Function execute ----------------------------#
    def execute(self, data: FuzzingData, case: FuzzCase,
                processor: Optional[ResponseProcessor] = None) -> CaseResult:
        try:
            response = self.caller.call(data, case)
        except TransportError as e:
            return self.recorder.report_error(data, case, f"Transport error: {e}")
        if processor is not None:
            return processor(data, case, response)
        return self.recorder.report_result(data, case, response)
