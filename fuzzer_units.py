########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
"""Data-driven fuzzer units.

Every unit is the same ``FuzzerUnit`` type; what differs between
"LeadingControlCharsInFields" and "OnlyControlCharsInHeaders" is configuration:
the catalog group, the placement, the target selector and the expected response.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import yaml

import anomaly_catalog as catalog
from anomaly_catalog import DEFAULT_CATALOG, AnomalyCatalog
from fuzz_models import ExpectedResponse, FuzzCase, FuzzingData, ResponseCodeFamily
from fuzzing_strategy import FuzzingStrategy, Placement
from json_utils import NOT_SET, apply_to_field, get_field
from service_caller import CaseResult, Executor
from target_selection import ALL_HEADERS, FIELDS_WITH_BODY, TargetSelector, TargetUniverse

logger = logging.getLogger(__name__)

TRIM_AND_VALIDATE = "trimAndValidate"
VALIDATE_AND_TRIM = "validateAndTrim"
SANITIZE_AND_VALIDATE = "sanitizeAndValidate"
VALIDATE_AND_SANITIZE = "validateAndSanitize"


@dataclass(frozen=True)
class FuzzerUnit:
    name: str
    description: str
    catalog_group: str
    placement: Placement
    selector: TargetSelector
    expected: ResponseCodeFamily
    expected_optional: Optional[ResponseCodeFamily] = None

    def expected_for(self, data: FuzzingData, target: str) -> ExpectedResponse:
        if self.expected_optional is not None and not data.is_required(target):
            return ExpectedResponse(family=self.expected_optional)
        return ExpectedResponse(family=self.expected)

    def strategies(self, data: FuzzingData, target: str, anomalies: Iterable[str]) -> List[FuzzingStrategy]:
        if self.selector.universe is TargetUniverse.HEADERS:
            original = data.header_map().get(target, "")
            schema = None
        else:
            original = get_field(data.payload, target)
            schema = data.schema_for(target)
            if original is NOT_SET:
                return [FuzzingStrategy.skip(f"field [{target}] not present in payload")]
        return [self.placement.strategy_for(a, original, schema) for a in anomalies]

    # ----------------------- Function cases ----------------------------#
    def cases(self, data: FuzzingData, anomaly_source: AnomalyCatalog = DEFAULT_CATALOG) -> Iterator[FuzzCase]:
        """Yield one case per (target x catalog entry); SKIP strategies yield nothing."""
        anomalies = anomaly_source.get(self.catalog_group)
        for target in self.selector.select(data):
            expected = self.expected_for(data, target)
            for strategy in self.strategies(data, target, anomalies):
                if strategy.is_skip:
                    logger.debug("%s: skipping %s (%s)", self.name, target, strategy.data)
                    continue
                yield self._build_case(data, target, strategy, expected)

    def _build_case(self, data: FuzzingData, target: str, strategy: FuzzingStrategy,
                    expected: ExpectedResponse) -> FuzzCase:
        scenario = f"Send {self.description} in {self.selector.universe.value[:-1]} [{target}]"
        if self.selector.universe is TargetUniverse.HEADERS:
            headers = data.header_map()
            headers[target] = strategy.apply(headers.get(target, ""))
            return FuzzCase(self.name, target, data.payload, scenario, expected, headers, str(strategy))
        payload = apply_to_field(data.payload, target, strategy.apply)
        return FuzzCase(self.name, target, payload, scenario, expected, {}, str(strategy))

    # ----------------------- Function run ----------------------------#
    def run(self, data: FuzzingData, executor: Executor,
            anomaly_source: AnomalyCatalog = DEFAULT_CATALOG) -> List[CaseResult]:
        results = [executor.execute(data, case) for case in self.cases(data, anomaly_source)]
        if not results:
            logger.info("Skipping %s for %s %s: nothing to fuzz", self.name, data.method, data.contract_path)
        return results


_GROUP_LABELS = {
    catalog.CONTROL_CHARS_FIELDS: ("ControlChars", "unicode control chars"),
    catalog.CONTROL_CHARS_HEADERS: ("ControlChars", "unicode control chars"),
    catalog.WHITESPACES: ("Spaces", "unicode whitespaces"),
    catalog.INVISIBLE_CHARS: ("InvisibleChars", "zero-width and invisible chars"),
    catalog.SINGLE_CODE_POINT_EMOJIS: ("SingleCodePointEmojis", "single code point emojis"),
    catalog.MULTI_CODE_POINT_EMOJIS: ("MultiCodePointEmojis", "multi code point emojis"),
}

_PLACEMENT_TEXT = {
    Placement.LEADING: "values prefixed with",
    Placement.TRAILING: "values trailed with",
    Placement.ONLY: "values made only of",
    Placement.WITHIN: "values containing",
}


def _unit(group: str, placement: Placement, selector: TargetSelector, expected: ResponseCodeFamily,
          expected_optional: Optional[ResponseCodeFamily] = None) -> FuzzerUnit:
    label, text = _GROUP_LABELS[group]
    where = "Headers" if selector.universe is TargetUniverse.HEADERS else "Fields"
    name = f"{placement.value.capitalize()}{label}In{where}"
    return FuzzerUnit(name, f"{_PLACEMENT_TEXT[placement]} {text}", group, placement, selector,
                      expected, expected_optional)


#================funtion build_builtin_units the stock fuzzer catalogue ##########
def build_builtin_units(edge_spaces_strategy: str = TRIM_AND_VALIDATE,
                        sanitization_strategy: str = SANITIZE_AND_VALIDATE) -> List[FuzzerUnit]:
    """Every built-in unit as data.

    ``edge_spaces_strategy`` decides whether leading/trailing control chars and
    whitespace are trimmed before validation (2XX) or rejected (4XX);
    ``sanitization_strategy`` does the same for emojis and WITHIN insertions.
    """
    if edge_spaces_strategy not in (TRIM_AND_VALIDATE, VALIDATE_AND_TRIM):
        raise ValueError(f"unknown edge spaces strategy: {edge_spaces_strategy}")
    if sanitization_strategy not in (SANITIZE_AND_VALIDATE, VALIDATE_AND_SANITIZE):
        raise ValueError(f"unknown sanitization strategy: {sanitization_strategy}")
    edge = ResponseCodeFamily.TWOXX if edge_spaces_strategy == TRIM_AND_VALIDATE else ResponseCodeFamily.FOURXX
    sanitized = ResponseCodeFamily.TWOXX if sanitization_strategy == SANITIZE_AND_VALIDATE else ResponseCodeFamily.FOURXX
    four, two = ResponseCodeFamily.FOURXX, ResponseCodeFamily.TWOXX

    units: List[FuzzerUnit] = []
    for group in (catalog.CONTROL_CHARS_FIELDS, catalog.WHITESPACES, catalog.INVISIBLE_CHARS):
        units.append(_unit(group, Placement.LEADING, FIELDS_WITH_BODY, edge))
        units.append(_unit(group, Placement.TRAILING, FIELDS_WITH_BODY, edge))
        units.append(_unit(group, Placement.ONLY, FIELDS_WITH_BODY, four, two))
        units.append(_unit(group, Placement.WITHIN, FIELDS_WITH_BODY, sanitized))
    for group in (catalog.SINGLE_CODE_POINT_EMOJIS, catalog.MULTI_CODE_POINT_EMOJIS):
        units.append(_unit(group, Placement.LEADING, FIELDS_WITH_BODY, sanitized))
        units.append(_unit(group, Placement.TRAILING, FIELDS_WITH_BODY, sanitized))
        units.append(_unit(group, Placement.ONLY, FIELDS_WITH_BODY, four, two))
        units.append(_unit(group, Placement.WITHIN, FIELDS_WITH_BODY, sanitized))
    units.append(_unit(catalog.CONTROL_CHARS_HEADERS, Placement.LEADING, ALL_HEADERS, two))
    units.append(_unit(catalog.CONTROL_CHARS_HEADERS, Placement.TRAILING, ALL_HEADERS, two))
    units.append(_unit(catalog.CONTROL_CHARS_HEADERS, Placement.ONLY, ALL_HEADERS, four, two))
    return units


class FuzzerRegistry:
    """Enable/disable switch per fuzzer unit name."""

    def __init__(self, units: Iterable[FuzzerUnit], enabled: Optional[Dict[str, bool]] = None):
        self._units: Dict[str, FuzzerUnit] = {u.name: u for u in units}
        self._enabled: Dict[str, bool] = {name: True for name in self._units}
        for name, flag in (enabled or {}).items():
            self.set_enabled(name, flag)

    def names(self) -> List[str]:
        return list(self._units)

    def set_enabled(self, name: str, flag: bool) -> None:
        if name not in self._units:
            logger.warning("Unknown fuzzer in registry config: %s", name)
            return
        self._enabled[name] = bool(flag)

    def is_enabled(self, name: str) -> bool:
        return self._enabled.get(name, False)

    def only(self, names: Iterable[str]) -> None:
        wanted = {n.strip() for n in names if n and n.strip()}
        for name in self._units:
            self._enabled[name] = name in wanted

    def enabled_units(self) -> List[FuzzerUnit]:
        return [u for n, u in self._units.items() if self._enabled[n]]

    @classmethod
    def from_yaml(cls, path: Union[str, Path], units: Iterable[FuzzerUnit]) -> "FuzzerRegistry":
        raw: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        section = raw.get("fuzzers", raw) if isinstance(raw, dict) else {}
        if not isinstance(section, dict):
            raise ValueError(f"{path}: 'fuzzers' must be a mapping of name -> true/false")
        return cls(units, {str(k): bool(v) for k, v in section.items()})
