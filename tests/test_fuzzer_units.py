"""Tests for data-driven fuzzer units, the built-in catalogue and the registry."""

from __future__ import annotations

import json
import logging

import pytest

from anomaly_catalog import AnomalyCatalog
from conftest import FakeSession, build_executor
from fuzz_models import FieldSchema, FuzzingData, ResponseCodeFamily
from fuzzer_units import (
    VALIDATE_AND_SANITIZE,
    VALIDATE_AND_TRIM,
    FuzzerRegistry,
    FuzzerUnit,
    build_builtin_units,
)
from fuzzing_strategy import Placement
from service_caller import CaseOutcome
from target_selection import ALL_HEADERS, FIELDS_WITH_BODY

CUSTOM = AnomalyCatalog({"custom": ["\u202e"]})


def trailing_unit(expected=ResponseCodeFamily.FOURXX, optional=None) -> FuzzerUnit:
    return FuzzerUnit("TrailingCustom", "values trailed with custom", "custom",
                      Placement.TRAILING, FIELDS_WITH_BODY, expected, optional)


@pytest.fixture
def name_data() -> FuzzingData:
    return FuzzingData("/users", "POST", '{"name": "ok"}', {"name": FieldSchema(required=True)})


class TestEndToEnd:
    def test_rejected_anomaly_passes(self, name_data):
        session = FakeSession(status=400)
        executor = build_executor(session)
        results = trailing_unit().run(name_data, executor, CUSTOM)

        assert len(results) == 1
        assert results[0].outcome is CaseOutcome.PASS
        assert session.sent_json() == {"name": "ok\u202e"}

    def test_accepted_anomaly_fails(self, name_data):
        executor = build_executor(FakeSession(status=200))
        results = trailing_unit().run(name_data, executor, CUSTOM)

        assert results[0].outcome is CaseOutcome.FAIL
        assert executor.recorder.errors == 1

    def test_original_payload_untouched(self, name_data):
        trailing_unit().run(name_data, build_executor(FakeSession(status=400)), CUSTOM)
        assert json.loads(name_data.payload) == {"name": "ok"}


class TestCases:
    def test_one_case_per_target_and_anomaly(self, user_data):
        catalog = AnomalyCatalog({"custom": ["a", "b"]})
        cases = list(trailing_unit().cases(user_data, catalog))
        # address#street, name, nick
        assert len(cases) == 6
        assert {c.target for c in cases} == {"address#street", "name", "nick"}

    def test_cases_are_deterministic(self, user_data):
        first = list(trailing_unit().cases(user_data, CUSTOM))
        second = list(trailing_unit().cases(user_data, CUSTOM))
        assert first == second

    def test_missing_field_yields_skip_strategy(self, user_data):
        strategies = trailing_unit().strategies(user_data, "ghost", ["x"])
        assert len(strategies) == 1 and strategies[0].is_skip

    def test_only_placement_expectation_depends_on_required(self, user_data):
        unit = FuzzerUnit("OnlyCustom", "only custom", "custom", Placement.ONLY, FIELDS_WITH_BODY,
                          ResponseCodeFamily.FOURXX, ResponseCodeFamily.TWOXX)
        expected = {c.target: str(c.expected) for c in unit.cases(user_data, CUSTOM)}
        assert expected["name"] == "4XX"
        assert expected["nick"] == "2XX"

    def test_header_cases_keep_payload(self, user_data):
        unit = FuzzerUnit("LeadingHeader", "header", "custom", Placement.LEADING, ALL_HEADERS,
                          ResponseCodeFamily.TWOXX)
        cases = list(unit.cases(user_data, AnomalyCatalog({"custom": ["\u0001"]})))
        assert [c.target for c in cases] == ["X-Request-Id", "X-Tenant"]
        assert cases[0].headers["X-Request-Id"] == "\u0001abc"
        assert cases[0].headers["X-Tenant"] == "t1"
        assert cases[0].payload == user_data.payload

    def test_get_operation_has_no_field_cases(self, user_data):
        data = FuzzingData("/users", "GET", user_data.payload, user_data.field_schemas)
        assert list(trailing_unit().cases(data, CUSTOM)) == []


class TestBuiltinUnits:
    def test_names_unique_and_complete(self):
        names = [u.name for u in build_builtin_units()]
        assert len(names) == len(set(names)) == 23
        for name in ("LeadingControlCharsInFields", "TrailingSpacesInFields", "WithinInvisibleCharsInFields",
                     "OnlyMultiCodePointEmojisInFields", "OnlyControlCharsInHeaders"):
            assert name in names

    def test_edge_spaces_strategy(self):
        trim = {u.name: u for u in build_builtin_units()}
        strict = {u.name: u for u in build_builtin_units(edge_spaces_strategy=VALIDATE_AND_TRIM)}
        assert trim["LeadingSpacesInFields"].expected is ResponseCodeFamily.TWOXX
        assert strict["LeadingSpacesInFields"].expected is ResponseCodeFamily.FOURXX

    def test_sanitization_strategy(self):
        strict = {u.name: u for u in build_builtin_units(sanitization_strategy=VALIDATE_AND_SANITIZE)}
        assert strict["TrailingSingleCodePointEmojisInFields"].expected is ResponseCodeFamily.FOURXX
        assert strict["WithinControlCharsInFields"].expected is ResponseCodeFamily.FOURXX

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            build_builtin_units(edge_spaces_strategy="whatever")


class TestRegistry:
    def test_all_enabled_by_default(self):
        registry = FuzzerRegistry(build_builtin_units())
        assert len(registry.enabled_units()) == 23

    def test_only(self):
        registry = FuzzerRegistry(build_builtin_units())
        registry.only(["LeadingControlCharsInFields", " OnlyControlCharsInHeaders "])
        assert [u.name for u in registry.enabled_units()] == ["LeadingControlCharsInFields", "OnlyControlCharsInHeaders"]

    def test_unknown_name_logged(self, caplog):
        registry = FuzzerRegistry(build_builtin_units())
        with caplog.at_level(logging.WARNING):
            registry.set_enabled("NoSuchFuzzer", False)
        assert "NoSuchFuzzer" in caplog.text
        assert not registry.is_enabled("NoSuchFuzzer")

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "fuzzers.yml"
        path.write_text("fuzzers:\n  LeadingControlCharsInFields: false\n", encoding="utf-8")
        registry = FuzzerRegistry.from_yaml(path, build_builtin_units())
        assert not registry.is_enabled("LeadingControlCharsInFields")
        assert registry.is_enabled("TrailingControlCharsInFields")
