########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import json
import logging
from copy import deepcopy
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "#"


class _NotSet:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_SET"

    def __bool__(self) -> bool:
        return False


NOT_SET = _NotSet()


#================funtion parse_payload JSON text to python object ##########
def parse_payload(payload: Any) -> Any:
    if payload is None:
        return None
    if isinstance(payload, (dict, list)):
        return deepcopy(payload)
    text = str(payload).strip()
    if not text:
        return None
    return json.loads(text)


#================funtion dump_payload python object to JSON text ##########
def dump_payload(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False)


#================funtion is_empty_payload nothing meaningful to mutate ##########
def is_empty_payload(payload: Any) -> bool:
    if payload is None:
        return True
    if isinstance(payload, (dict, list)):
        return len(payload) == 0
    text = str(payload).strip()
    return text in ("", "{}", "[]", "null")


def _segments(field: str) -> List[str]:
    return [s for s in (field or "").split(FIELD_SEPARATOR) if s]


def _lookup(node: Any, parts: List[str]) -> Any:
    if not parts:
        return node
    if isinstance(node, list):
        if not node:
            return NOT_SET
        return _lookup(node[0], parts)
    if isinstance(node, dict) and parts[0] in node:
        return _lookup(node[parts[0]], parts[1:])
    return NOT_SET


#================funtion get_field read a (nested) field value ##########
def get_field(payload: Any, field: str) -> Any:
    """Return the value of ``field`` or ``NOT_SET`` when the payload does not carry it.

    Nested names use ``#`` (``address#street``). Arrays are looked up through
    their first element.
    """
    try:
        obj = parse_payload(payload)
    except ValueError:
        return NOT_SET
    parts = _segments(field)
    if obj is None or not parts:
        return NOT_SET
    return _lookup(obj, parts)


def _update(node: Any, parts: List[str], fn: Callable[[Any], Any]) -> bool:
    if isinstance(node, list):
        changed = False
        for item in node:
            changed = _update(item, parts, fn) or changed
        return changed
    if not isinstance(node, dict) or parts[0] not in node:
        return False
    if len(parts) == 1:
        node[parts[0]] = fn(node[parts[0]])
        return True
    return _update(node[parts[0]], parts[1:], fn)


#================funtion apply_to_field transform a field and return new JSON ##########
def apply_to_field(payload: Any, field: str, fn: Callable[[Any], Any]) -> str:
    """Return a new JSON text where ``field`` holds ``fn(old_value)``.

    Arrays on the way apply the change to every element. A missing field leaves
    the payload unchanged.
    """
    obj = parse_payload(payload)
    parts = _segments(field)
    if obj is None:
        return payload or ""
    if not parts:
        return dump_payload(obj)
    if not _update(obj, parts, fn):
        logger.debug("Field [%s] not present in payload, nothing replaced", field)
    return dump_payload(obj)


#================funtion set_field replace a field value ##########
def set_field(payload: Any, field: str, value: Any) -> str:
    return apply_to_field(payload, field, lambda _old: value)


#================funtion flatten_fields list every field name of a payload ##########
def flatten_fields(payload: Any) -> List[str]:
    try:
        obj = parse_payload(payload)
    except ValueError:
        return []
    return _flatten(obj, "")


def _flatten(obj: Any, prefix: str) -> List[str]:
    out: List[str] = []
    if isinstance(obj, list):
        return _flatten(obj[0], prefix) if obj else out
    if not isinstance(obj, dict):
        return out
    for key, val in obj.items():
        name = f"{prefix}{FIELD_SEPARATOR}{key}" if prefix else str(key)
        out.append(name)
        if isinstance(val, (dict, list)):
            out.extend(_flatten(val, name))
    return out
