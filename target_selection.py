########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Tuple

from fuzz_models import BODYLESS_METHODS, FuzzingData
from json_utils import NOT_SET, get_field

logger = logging.getLogger(__name__)


class TargetUniverse(Enum):
    FIELDS = "fields"
    HEADERS = "headers"


@dataclass(frozen=True)
class TargetSelector:
    """Which names of a request a fuzzer unit touches.

    ``field_types`` limits body fields to the given schema types (empty = any
    type); ``skip_methods`` makes the selector inapplicable to those methods.
    """

    universe: TargetUniverse = TargetUniverse.FIELDS
    required_only: bool = False
    field_types: Tuple[str, ...] = ("string",)
    skip_methods: FrozenSet[str] = frozenset()

    def is_applicable(self, data: FuzzingData) -> bool:
        return data.method.upper() not in self.skip_methods

    def select(self, data: FuzzingData) -> List[str]:
        if not self.is_applicable(data):
            logger.debug("Selector %s skipped for method %s", self.universe.value, data.method)
            return []
        if self.universe is TargetUniverse.HEADERS:
            return [h.name for h in data.headers if h.required or not self.required_only]
        return self._select_fields(data)

    def _select_fields(self, data: FuzzingData) -> List[str]:
        wanted = {t.lower() for t in self.field_types}
        out = []
        for name in sorted(data.all_fields):
            schema = data.schema_for(name)
            if self.required_only and not schema.required:
                continue
            if wanted and (schema.type or "").lower() not in wanted:
                continue
            if get_field(data.payload, name) is NOT_SET:
                continue
            out.append(name)
        return out


FIELDS_WITH_BODY = TargetSelector(TargetUniverse.FIELDS, skip_methods=BODYLESS_METHODS)
REQUIRED_FIELDS_WITH_BODY = TargetSelector(TargetUniverse.FIELDS, required_only=True, skip_methods=BODYLESS_METHODS)
ALL_HEADERS = TargetSelector(TargetUniverse.HEADERS, field_types=())
