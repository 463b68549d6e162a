"""Tests for target selection over fields and headers."""

from __future__ import annotations

from dataclasses import replace

import pytest

from target_selection import (
    ALL_HEADERS,
    FIELDS_WITH_BODY,
    REQUIRED_FIELDS_WITH_BODY,
    TargetSelector,
    TargetUniverse,
)


class TestFieldSelection:
    def test_string_fields_present_in_payload(self, user_data):
        assert FIELDS_WITH_BODY.select(user_data) == ["address#street", "name", "nick"]

    def test_required_only(self, user_data):
        assert REQUIRED_FIELDS_WITH_BODY.select(user_data) == ["name"]

    def test_any_type(self, user_data):
        selector = TargetSelector(TargetUniverse.FIELDS, field_types=())
        assert selector.select(user_data) == ["address", "address#street", "age", "name", "nick"]

    def test_type_match_is_case_insensitive(self, user_data):
        selector = TargetSelector(TargetUniverse.FIELDS, field_types=("INTEGER",))
        assert selector.select(user_data) == ["age"]

    @pytest.mark.parametrize("method", ["GET", "DELETE", "HEAD"])
    def test_bodyless_methods_are_not_applicable(self, user_data, method):
        data = replace(user_data, method=method)
        assert not FIELDS_WITH_BODY.is_applicable(data)
        assert FIELDS_WITH_BODY.select(data) == []

    def test_empty_payload_selects_nothing(self, user_data):
        assert FIELDS_WITH_BODY.select(replace(user_data, payload="")) == []


class TestHeaderSelection:
    def test_all_headers(self, user_data):
        assert ALL_HEADERS.select(user_data) == ["X-Request-Id", "X-Tenant"]

    def test_required_headers(self, user_data):
        selector = TargetSelector(TargetUniverse.HEADERS, required_only=True, field_types=())
        assert selector.select(user_data) == ["X-Request-Id"]

    def test_headers_apply_to_get(self, user_data):
        assert ALL_HEADERS.select(replace(user_data, method="GET")) == ["X-Request-Id", "X-Tenant"]
