########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping

from fuzz_models import ExpectedResponse, FuzzCase, FuzzingData
from json_utils import dump_payload, set_field
from service_caller import CaseResult, Executor

logger = logging.getLogger(__name__)

EXPECTED_RESPONSE_CODE = "expected_response_code"
DESCRIPTION = "description"
HTTP_METHOD = "http_method"
STRINGS_FILE = "strings_file"
TARGET_FIELDS = "target_fields"
TARGET_FIELD_TYPES = "target_field_types"
HTTP_HEADERS = "http_headers"
HTTP_BODY = "http_body"
ALL = "all"

RESERVED_WORDS = {EXPECTED_RESPONSE_CODE, DESCRIPTION, HTTP_METHOD, STRINGS_FILE, TARGET_FIELDS,
                  TARGET_FIELD_TYPES, "output", "verify"}


#================funtion is_matching_http_method entry method vs operation method ##########
def is_matching_http_method(entry: Any, method: str) -> bool:
    if not isinstance(entry, Mapping):
        return False
    declared = entry.get(HTTP_METHOD)
    if declared is None:
        return True
    return str(declared).strip().upper() == (method or "").upper()


class CustomFuzzerExecutor:
    """Runs derived test-case configurations: one request per candidate value."""

    name = "SecurityFuzzer"

    def __init__(self, executor: Executor):
        self.executor = executor
        self.recorder = executor.recorder

    def record_error(self, message: str) -> None:
        self.recorder.record_error(message)

    # ----------------------- Function execute_test_cases ----------------------------#
    def execute_test_cases(self, data: FuzzingData, test_name: str, config: Mapping[str, Any]) -> List[CaseResult]:
        try:
            expected = ExpectedResponse.parse(config.get(EXPECTED_RESPONSE_CODE))
        except ValueError as e:
            message = f"Test [{test_name}] for path [{data.contract_path}] has an invalid {EXPECTED_RESPONSE_CODE}: {e}"
            logger.error(message)
            self.record_error(message)
            return []
        description = str(config.get(DESCRIPTION, test_name))
        results: List[CaseResult] = []
        for target, candidates in config.items():
            if target in RESERVED_WORDS or not isinstance(candidates, list):
                continue
            if target == HTTP_HEADERS and not data.headers:
                logger.info("Skipping [%s] for %s %s: operation has no headers", target, data.method, data.contract_path)
                continue
            for value in candidates:
                case = self._case(data, test_name, description, target, value, expected)
                results.append(self.executor.execute(data, case))
        logger.info("Test [%s] on %s %s executed %d cases", test_name, data.method, data.contract_path, len(results))
        return results

    def _case(self, data: FuzzingData, test_name: str, description: str, target: str, value: Any,
              expected: ExpectedResponse) -> FuzzCase:
        scenario = f"{description}. Send [{value}] in [{target}]"
        if target == HTTP_HEADERS:
            headers: Dict[str, str] = {name: str(value) for name in data.header_map()}
            return FuzzCase(self.name, target, data.payload, scenario, expected, headers, test_name)
        if target == HTTP_BODY:
            body = value if isinstance(value, str) else dump_payload(value)
            return FuzzCase(self.name, target, body, scenario, expected, {}, test_name)
        return FuzzCase(self.name, target, set_field(data.payload, target, value), scenario, expected, {}, test_name)
