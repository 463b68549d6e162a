########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

DEFAULT_MAX_TESTS = 10_000


@dataclass(frozen=True)
class StopSnapshot:
    errors: int
    tests: int
    elapsed: float


@dataclass(frozen=True)
class StopConditions:
    """Thresholds for the continuous loop. Any one reached stops it."""

    max_time: Optional[float] = None
    max_errors: Optional[int] = None
    max_tests: Optional[int] = None

    @property
    def configured(self) -> bool:
        return any(v is not None for v in (self.max_time, self.max_errors, self.max_tests))

    @property
    def effective_max_tests(self) -> Optional[int]:
        if not self.configured:
            return DEFAULT_MAX_TESTS
        return self.max_tests

    def should_stop(self, snapshot: StopSnapshot) -> bool:
        if self.max_time is not None and snapshot.elapsed >= self.max_time:
            return True
        if self.max_errors is not None and snapshot.errors >= self.max_errors:
            return True
        max_tests = self.effective_max_tests
        return max_tests is not None and snapshot.tests >= max_tests


class StopState:
    """Running counters of one campaign, updated under a lock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._start = clock()
        self._errors = 0
        self._tests = 0
        self._lock = threading.Lock()

    def record(self, errored: bool) -> None:
        with self._lock:
            self._tests += 1
            if errored:
                self._errors += 1

    def snapshot(self) -> StopSnapshot:
        with self._lock:
            return StopSnapshot(self._errors, self._tests, self._clock() - self._start)
