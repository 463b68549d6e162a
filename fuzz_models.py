########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE"}
BODYLESS_METHODS = frozenset({"GET", "DELETE", "HEAD", "OPTIONS", "TRACE"})


class ResponseCodeFamily(Enum):
    ONEXX = "1XX"
    TWOXX = "2XX"
    THREEXX = "3XX"
    FOURXX = "4XX"
    FIVEXX = "5XX"

    @property
    def first_digit(self) -> int:
        return int(self.value[0])

    def matches(self, status_code: Optional[int]) -> bool:
        if status_code is None:
            return False
        return int(status_code) // 100 == self.first_digit

    @classmethod
    def from_status(cls, status_code: int) -> "ResponseCodeFamily":
        digit = str(int(status_code) // 100)
        for fam in cls:
            if fam.value[0] == digit:
                return fam
        raise ValueError(f"status code out of range: {status_code}")


@dataclass(frozen=True)
class ExpectedResponse:
    """Either an exact status code (``400``) or a family (``4XX``)."""

    code: Optional[int] = None
    family: Optional[ResponseCodeFamily] = None

    @classmethod
    def parse(cls, value: Any) -> "ExpectedResponse":
        if isinstance(value, ResponseCodeFamily):
            return cls(family=value)
        text = str(value).strip().upper()
        if len(text) == 3 and text.endswith("XX") and text[0] in "12345":
            return cls(family=ResponseCodeFamily(text))
        if text.isdigit():
            return cls(code=int(text))
        raise ValueError(f"invalid expected response code: {value!r}")

    def matches(self, status_code: Optional[int]) -> bool:
        if status_code is None:
            return False
        if self.code is not None:
            return int(status_code) == self.code
        if self.family is not None:
            return self.family.matches(status_code)
        return False

    def __str__(self) -> str:
        if self.code is not None:
            return str(self.code)
        return self.family.value if self.family else "-"


@dataclass(frozen=True)
class FieldSchema:
    type: str = "string"
    format: str = ""
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    enum: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class HeaderParam:
    name: str
    value: str = ""
    required: bool = False


@dataclass(frozen=True)
class FuzzingData:
    """Immutable request context for one (path, method) contract operation."""

    contract_path: str
    method: str
    payload: str = ""
    field_schemas: Mapping[str, FieldSchema] = field(default_factory=dict)
    all_fields: FrozenSet[str] = frozenset()
    headers: Tuple[HeaderParam, ...] = ()
    path: str = ""
    query_params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "method", (self.method or "GET").upper())
        if not self.path:
            object.__setattr__(self, "path", self.contract_path)
        if not self.all_fields and self.field_schemas:
            object.__setattr__(self, "all_fields", frozenset(self.field_schemas))

    def schema_for(self, name: str) -> FieldSchema:
        return self.field_schemas.get(name) or FieldSchema()

    def is_required(self, name: str) -> bool:
        if name in self.field_schemas:
            return self.field_schemas[name].required
        return any(h.required for h in self.headers if h.name == name)

    def header_map(self) -> Dict[str, str]:
        return {h.name: h.value for h in self.headers}


@dataclass(frozen=True)
class FuzzCase:
    """One fully described request to send, plus how its response is judged."""

    fuzzer: str
    target: str
    payload: str
    scenario: str
    expected: Optional[ExpectedResponse] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    description: str = ""
