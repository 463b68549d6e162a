########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
"""Continuous fuzzing: random field, random mutator, until a stop threshold is hit."""
from __future__ import annotations
import logging
import random
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from tqdm import tqdm

from fuzz_models import ExpectedResponse, FuzzCase, FuzzingData
from json_utils import is_empty_payload
from mutators import Mutator
from service_caller import CaseOutcome, CaseResult, Executor, FuzzResponse, TestCaseRecorder
from stop_conditions import StopConditions, StopState

logger = logging.getLogger(__name__)

FUZZER_NAME = "RandomFuzzer"


@dataclass(frozen=True)
class MatchRule:
    """Response criteria that turn a random case into a reported error.

    A response matches when ANY configured criterion matches. Codes accept exact
    values (``500``) or families (``5XX``).
    """

    codes: Sequence[str] = ()
    regex: Optional[str] = None
    words: Optional[int] = None
    lines: Optional[int] = None
    size: Optional[int] = None

    @property
    def is_set(self) -> bool:
        return bool(self.codes) or any(v is not None for v in (self.regex, self.words, self.lines, self.size))

    def is_match(self, response: FuzzResponse) -> bool:
        for code in self.codes:
            if ExpectedResponse.parse(code).matches(response.status_code):
                return True
        if self.regex is not None and re.search(self.regex, response.body or "", re.DOTALL):
            return True
        if self.words is not None and response.words == self.words:
            return True
        if self.lines is not None and response.lines == self.lines:
            return True
        return self.size is not None and response.size == self.size

    def describe(self) -> str:
        parts = []
        if self.codes:
            parts.append(f"codes={list(self.codes)}")
        for label in ("regex", "words", "lines", "size"):
            val = getattr(self, label)
            if val is not None:
                parts.append(f"{label}={val}")
        return ", ".join(parts) or "-"


class RandomFuzzer:
    name = FUZZER_NAME
    description = "continuously fuzz random fields with random values based on registered mutators"

    # ----------------------- Function __init__ ----------------------------#
    def __init__(
        self,
        executor: Executor,
        mutators: Sequence[Mutator],
        *,
        stop_conditions: Optional[StopConditions] = None,
        match_rule: Optional[MatchRule] = None,
        rng: Optional[random.Random] = None,
        show_progress: bool = False,
    ) -> None:
        self.executor = executor
        self.recorder: TestCaseRecorder = executor.recorder
        self.mutators: List[Mutator] = list(mutators)
        self.stop_conditions = stop_conditions or StopConditions()
        self.match_rule = match_rule or MatchRule()
        self.rng = rng or random.Random()
        self.show_progress = show_progress

    # ----------------------- Function fuzz ----------------------------#
    def fuzz(self, data: FuzzingData) -> int:
        """Run the loop for one operation and return the number of executed cases."""
        if is_empty_payload(data.payload):
            logger.error("Skipping fuzzer as payload is empty: %s %s", data.method, data.contract_path)
            return 0
        if not self.mutators:
            logger.error("No Mutators to run! Enable debug for more details.")
            return 0
        fields = sorted(data.all_fields)
        if not fields:
            logger.info("Skipping %s %s: no fields to fuzz", data.method, data.contract_path)
            return 0

        state = StopState()
        bar = None
        if self.show_progress:
            bar = tqdm(total=self.stop_conditions.effective_max_tests, desc=f"{data.method} {data.contract_path}", unit="case")
        try:
            while not self.stop_conditions.should_stop(state.snapshot()):
                target = self.rng.choice(fields)
                mutator = self.rng.choice(self.mutators)
                case = FuzzCase(
                    fuzzer=self.name,
                    target=target,
                    payload=mutator.mutate(data.payload, target),
                    scenario=f"Send a random payload mutating field [{target}] with [{mutator.name}] mutator",
                    description=mutator.name,
                )
                result = self.executor.execute(data, case, self.process_response)
                state.record(result.outcome is CaseOutcome.FAIL)
                if bar is not None:
                    bar.update(1)
        finally:
            if bar is not None:
                bar.close()
        snap = state.snapshot()
        logger.info("%s finished %s %s: %d tests, %d errors, %.1fs", self.name, data.method,
                    data.contract_path, snap.tests, snap.errors, snap.elapsed)
        return snap.tests

    def process_response(self, data: FuzzingData, case: FuzzCase, response: FuzzResponse) -> CaseResult:
        if self.match_rule.is_match(response):
            return self.recorder.report_error(data, case, f"Response matches arguments: {self.match_rule.describe()}", response)
        return self.recorder.skip(data, case, "Skipping test as response does not match given matchers!", response)
