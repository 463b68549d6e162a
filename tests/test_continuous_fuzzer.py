"""Tests for the continuous random fuzzer and its response matchers."""

from __future__ import annotations

import random

import pytest

from conftest import FakeSession, build_executor
from continuous_fuzzer import MatchRule, RandomFuzzer
from fuzz_models import FieldSchema, FuzzingData
from mutators import builtin_mutators, resolve_mutators
from service_caller import CaseOutcome, FuzzResponse
from stop_conditions import StopConditions


@pytest.fixture
def data() -> FuzzingData:
    return FuzzingData("/users", "POST", '{"name": "a", "age": 1}',
                       {"name": FieldSchema(), "age": FieldSchema(type="integer")})


def fuzzer(session, rule=None, seed=3, **stop) -> RandomFuzzer:
    rng = random.Random(seed)
    return RandomFuzzer(build_executor(session), builtin_mutators(rng),
                        stop_conditions=StopConditions(**stop), match_rule=rule, rng=rng)


class TestLoop:
    @pytest.mark.parametrize("n", [0, 1, 7, 25])
    def test_max_tests_runs_exactly_n(self, data, n):
        session = FakeSession()
        assert fuzzer(session, max_tests=n).fuzz(data) == n
        assert len(session.calls) == n

    def test_stops_on_max_errors(self, data):
        session = FakeSession(status=500)
        f = fuzzer(session, MatchRule(codes=("5XX",)), max_errors=3, max_tests=100)
        assert f.fuzz(data) == 3
        assert f.recorder.errors == 3

    def test_no_mutators_no_requests(self, data):
        session = FakeSession()
        f = RandomFuzzer(build_executor(session), [], stop_conditions=StopConditions(max_tests=5))
        assert f.fuzz(data) == 0
        assert session.calls == []

    def test_zero_time_budget_sends_nothing(self, data):
        session = FakeSession()
        assert fuzzer(session, max_time=0).fuzz(data) == 0
        assert session.calls == []

    def test_empty_mutators_folder_no_requests(self, data, tmp_path):
        session = FakeSession()
        rng = random.Random(1)
        f = RandomFuzzer(build_executor(session), resolve_mutators(tmp_path, rng),
                         stop_conditions=StopConditions(max_tests=5), rng=rng)
        assert f.fuzz(data) == 0
        assert session.calls == []

    def test_empty_payload_skipped(self):
        session = FakeSession()
        assert fuzzer(session, max_tests=5).fuzz(FuzzingData("/users", "POST", "{}")) == 0
        assert session.calls == []

    def test_no_matcher_skips_every_case(self, data):
        f = fuzzer(FakeSession(status=500), max_tests=4)
        f.fuzz(data)
        assert {r.outcome for r in f.recorder.results} == {CaseOutcome.SKIP}

    def test_seed_makes_campaign_reproducible(self, data):
        first, second = FakeSession(), FakeSession()
        fuzzer(first, seed=11, max_tests=10).fuzz(data)
        fuzzer(second, seed=11, max_tests=10).fuzz(data)
        assert [c.kwargs["data"] for c in first.calls] == [c.kwargs["data"] for c in second.calls]

    def test_targets_only_known_fields(self, data):
        f = fuzzer(FakeSession(), max_tests=30)
        f.fuzz(data)
        assert {r.target for r in f.recorder.results} <= {"name", "age"}


class TestMatchRule:
    @pytest.mark.parametrize(
        "rule,response,matched",
        [
            (MatchRule(codes=("500",)), FuzzResponse(500), True),
            (MatchRule(codes=("5XX",)), FuzzResponse(503), True),
            (MatchRule(codes=("5XX",)), FuzzResponse(404), False),
            (MatchRule(regex="Exception"), FuzzResponse(200, "java.lang.NullPointerException"), True),
            (MatchRule(words=2), FuzzResponse(200, "two words"), True),
            (MatchRule(lines=1), FuzzResponse(200, "a\nb"), False),
            (MatchRule(size=3), FuzzResponse(200, "abc"), True),
            (MatchRule(codes=("400",), size=0), FuzzResponse(200, ""), True),
            (MatchRule(), FuzzResponse(500, "boom"), False),
        ],
    )
    def test_is_match(self, rule, response, matched):
        assert rule.is_match(response) is matched

    def test_is_set_and_describe(self):
        assert not MatchRule().is_set
        rule = MatchRule(codes=("500",), regex="err")
        assert rule.is_set
        assert rule.describe() == "codes=['500'], regex=err"
