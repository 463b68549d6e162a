########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from fuzz_models import FieldSchema


class StrategyError(Exception):
    pass


class StrategyKind(Enum):
    NONE = "none"
    REPLACE = "replace"
    TRAIL = "trail"
    PREFIX = "prefix"
    SKIP = "skip"


@dataclass(frozen=True)
class FuzzingStrategy:
    """One deterministic text transformation and its operand."""

    kind: StrategyKind = StrategyKind.NONE
    data: str = ""

    @classmethod
    def none(cls) -> "FuzzingStrategy":
        return cls(StrategyKind.NONE)

    @classmethod
    def replace(cls, data: Any = "") -> "FuzzingStrategy":
        return cls(StrategyKind.REPLACE, str(data))

    @classmethod
    def trail(cls, data: Any = "") -> "FuzzingStrategy":
        return cls(StrategyKind.TRAIL, str(data))

    @classmethod
    def prefix(cls, data: Any = "") -> "FuzzingStrategy":
        return cls(StrategyKind.PREFIX, str(data))

    @classmethod
    def skip(cls, reason: str = "") -> "FuzzingStrategy":
        return cls(StrategyKind.SKIP, reason)

    @property
    def is_skip(self) -> bool:
        return self.kind is StrategyKind.SKIP

    @property
    def name(self) -> str:
        return self.kind.name

    def apply(self, original: Any) -> str:
        if self.kind is StrategyKind.SKIP:
            raise StrategyError(f"SKIP strategy cannot be applied: {self.data}")
        text = "" if original is None else str(original)
        if self.kind is StrategyKind.REPLACE:
            return self.data
        if self.kind is StrategyKind.TRAIL:
            return text + self.data
        if self.kind is StrategyKind.PREFIX:
            return self.data + text
        return text

    def __str__(self) -> str:
        return f"{self.name}({self.data!r})" if self.data else self.name


class Placement(Enum):
    LEADING = "leading"
    TRAILING = "trailing"
    ONLY = "only"
    WITHIN = "within"

    def strategy_for(self, anomaly: str, original: Any = None, schema: Optional[FieldSchema] = None) -> FuzzingStrategy:
        """Derive the strategy for one catalog entry; no randomness involved."""
        if self is Placement.LEADING:
            return FuzzingStrategy.prefix(anomaly)
        if self is Placement.TRAILING:
            return FuzzingStrategy.trail(anomaly)
        if self is Placement.ONLY:
            return FuzzingStrategy.replace(repeat_to_min_length(anomaly, schema))
        return FuzzingStrategy.replace(insert_within(original, anomaly))


#================funtion insert_within splice a value at the midpoint ##########
def insert_within(original: Any, value: str) -> str:
    text = "" if original is None else str(original)
    mid = len(text) // 2
    return text[:mid] + value + text[mid:]


#================funtion repeat_to_min_length repeat until minLength is met ##########
def repeat_to_min_length(value: str, schema: Optional[FieldSchema] = None) -> str:
    if not value:
        return value
    min_len = (schema.min_length if schema else None) or 1
    times = max(1, -(-int(min_len) // len(value)))
    return value * times
