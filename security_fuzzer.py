########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
"""Security dictionary DSL.

A YAML document maps contract paths (or ``all``) to named test cases::

    /users:
      nastyNames:
        description: Names from the big list of naughty strings
        http_method: POST
        expected_response_code: 400
        strings_file: dictionaries/naughty.txt
        target_field_types: [string]

Each test case is expanded into one derived configuration per matching field,
and every derived configuration carries the whole dictionary for its field.
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from anomaly_catalog import load_nasty_strings
from custom_fuzzer import (
    ALL, DESCRIPTION, EXPECTED_RESPONSE_CODE, HTTP_BODY, HTTP_HEADERS, HTTP_METHOD,
    STRINGS_FILE, TARGET_FIELD_TYPES, TARGET_FIELDS, CustomFuzzerExecutor, is_matching_http_method,
)
from fuzz_models import FuzzingData
from json_utils import NOT_SET, get_field

logger = logging.getLogger(__name__)

REQUIRED_KEYWORDS = (EXPECTED_RESPONSE_CODE, DESCRIPTION, HTTP_METHOD, STRINGS_FILE)

SecurityConfig = Dict[str, Dict[str, Dict[str, Any]]]


#================funtion as_list YAML list or "[a, b]" text to list ##########
def as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value]
    else:
        items = str(value).replace("[", "").replace("]", "").split(",")
    return [i.strip() for i in items if i is not None and i.strip()]


class SecurityTestCase(BaseModel):
    """Validated view of one DSL entry; unknown keys are kept as extras."""

    model_config = ConfigDict(extra="allow")

    expected_response_code: str
    description: str
    http_method: str
    strings_file: str
    target_fields: List[str] = []
    target_field_types: List[str] = []

    @field_validator("expected_response_code", "description", "http_method", "strings_file", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("target_fields", "target_field_types", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return as_list(v)


#================funtion missing_keywords required keys absent from an entry ##########
def missing_keywords(entry: Mapping[str, Any]) -> List[str]:
    missing = [k for k in REQUIRED_KEYWORDS if entry.get(k) is None]
    if entry.get(TARGET_FIELDS) is None and entry.get(TARGET_FIELD_TYPES) is None:
        missing.append(f"{TARGET_FIELDS} or {TARGET_FIELD_TYPES}")
    return missing


#================funtion load_security_config read the DSL YAML file ##########
def load_security_config(path: Union[str, Path]) -> SecurityConfig:
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: security config must map paths to test cases")
    config: SecurityConfig = {}
    for contract_path, tests in raw.items():
        if not isinstance(tests, dict):
            logger.warning("Ignoring path [%s] in %s: expected a mapping of test cases", contract_path, path)
            continue
        config[str(contract_path)] = tests
    return config


class SecurityFuzzer:
    name = "SecurityFuzzer"
    description = "use custom dictionaries of 'nasty' strings to target specific fields or data types"

    def __init__(self, config: Optional[SecurityConfig], custom_executor: CustomFuzzerExecutor):
        self.config: SecurityConfig = config or {}
        self.custom_executor = custom_executor

    # ----------------------- Function fuzz ----------------------------#
    def fuzz(self, data: FuzzingData) -> int:
        """Expand every matching entry; returns the number of derived configurations run."""
        if not self.config:
            return 0
        entries = self._current_path_values(data)
        if not entries:
            logger.info("Skipping path [%s] for method [%s] as it was not configured in the security config",
                        data.contract_path, data.method)
            return 0
        return sum(self._execute_test_cases(data, key, value) for key, value in entries.items())

    def _current_path_values(self, data: FuzzingData) -> Dict[str, Any]:
        values = self.config.get(data.contract_path)
        if not values:
            values = self.config.get(ALL) or {}
        return {k: v for k, v in values.items() if is_matching_http_method(v, data.method)}

    def _execute_test_cases(self, data: FuzzingData, key: str, entry: Mapping[str, Any]) -> int:
        logger.debug("Path [%s] has the following security configuration [%s]", data.contract_path, entry)
        missing = missing_keywords(entry)
        if missing:
            message = f"Path [{data.contract_path}] is missing the following mandatory entries: {missing}"
            logger.error(message)
            self.custom_executor.record_error(message)
            return 0

        test_case = SecurityTestCase.model_validate(dict(entry))
        try:
            nasty_strings = load_nasty_strings(test_case.strings_file)
        except (OSError, UnicodeDecodeError) as e:
            message = (f"There was a problem reading the strings file: {test_case.strings_file} for path "
                       f"[{data.contract_path}]. Error message: {e}")
            logger.error(message)
            self.custom_executor.record_error(message)
            return 0
        logger.info("Strings file parsed successfully! Found %d entries", len(nasty_strings))

        targets = self.target_fields(test_case, data)
        return self._fuzz_fields(data, key, entry, nasty_strings, targets)

    def _fuzz_fields(self, data: FuzzingData, key: str, entry: Mapping[str, Any],
                     nasty_strings: List[str], targets: List[str]) -> int:
        logger.debug("Target fields %s", targets)
        for target in targets:
            logger.info("Fuzzing field [%s]", target)
            derived = dict(entry)
            derived[target] = list(nasty_strings)
            derived[DESCRIPTION] = f"{entry.get(DESCRIPTION)}, field [{target}]"
            for k in (TARGET_FIELDS, TARGET_FIELD_TYPES, STRINGS_FILE):
                derived.pop(k, None)
            self.custom_executor.execute_test_cases(data, key, derived)
        return len(targets)

    # ----------------------- Function target_fields ----------------------------#
    @staticmethod
    def target_fields(test_case: SecurityTestCase, data: FuzzingData) -> List[str]:
        types = [t.lower() for t in test_case.target_field_types]
        targets = [
            name for name, schema in data.field_schemas.items()
            if ((schema.type or "").lower() in types or (schema.format or "").lower() in types)
            and get_field(data.payload, name) is not NOT_SET
        ]
        if HTTP_HEADERS in types:
            if data.headers:
                targets.append(HTTP_HEADERS)
            else:
                logger.info("No headers to fuzz for %s %s", data.method, data.contract_path)
        if HTTP_BODY in types:
            targets.append(HTTP_BODY)
        targets.extend(test_case.target_fields)

        out: List[str] = []
        for t in targets:
            if t and t.strip() and t not in out:
                out.append(t)
        return out
