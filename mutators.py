########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import logging
import random
import string
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

import anomaly_catalog as catalog
from fuzzing_strategy import insert_within
from json_utils import apply_to_field, dump_payload, parse_payload

logger = logging.getLogger(__name__)

NASTY_VALUES = [
    "' OR '1'='1",
    "'; DROP TABLE users;--",
    "<script>alert(1)</script>",
    "\"><img src=x onerror=alert(1)>",
    "%s%s%s%s%n",
    "../../../../../etc/passwd",
    "${jndi:ldap://127.0.0.1/a}",
    "{{7*7}}",
    "$(id)",
    "undefined",
    "NaN",
    "-1e309",
]

LARGE_STRING_SIZE = 20_000


class Mutator:
    """Named transform of (payload, field) into a new payload."""

    name = "mutator"

    def mutate(self, payload: str, field: str) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class ValueMutator(Mutator):
    """Built-in mutator acting on the current value of the target field."""

    def __init__(self, name: str, fn: Callable[[Any, random.Random], Any], rng: Optional[random.Random] = None):
        self.name = name
        self.fn = fn
        self.rng = rng or random.Random()

    def mutate(self, payload: str, field: str) -> str:
        return apply_to_field(payload, field, lambda old: self.fn(old, self.rng))


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return dump_payload(value)
    return str(value)


def _random_string(_value: Any, rng: random.Random) -> str:
    return "".join(rng.choice(string.ascii_letters + string.digits) for _ in range(rng.randint(5, 30)))


def _random_control_chars(value: Any, rng: random.Random) -> str:
    return insert_within(_as_text(value), rng.choice(catalog.DEFAULT_CATALOG.get(catalog.CONTROL_CHARS_FIELDS)))


def _random_whitespaces(value: Any, rng: random.Random) -> str:
    return rng.choice(catalog.DEFAULT_CATALOG.get(catalog.WHITESPACES)) + _as_text(value)


def _random_emojis(value: Any, rng: random.Random) -> str:
    pool = catalog.DEFAULT_CATALOG.get(catalog.SINGLE_CODE_POINT_EMOJIS) + catalog.DEFAULT_CATALOG.get(catalog.MULTI_CODE_POINT_EMOJIS)
    return _as_text(value) + rng.choice(pool)


def _zero_width_chars(value: Any, rng: random.Random) -> str:
    return insert_within(_as_text(value), rng.choice(catalog.DEFAULT_CATALOG.get(catalog.INVISIBLE_CHARS)))


def _nasty_string(_value: Any, rng: random.Random) -> str:
    return rng.choice(NASTY_VALUES)


def _large_string(_value: Any, rng: random.Random) -> str:
    return rng.choice(string.ascii_letters) * LARGE_STRING_SIZE


def _big_number(_value: Any, rng: random.Random) -> int:
    return rng.choice([2 ** 31, 2 ** 63, 2 ** 64, 10 ** 30])


def _negative_number(value: Any, rng: random.Random) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value != 0:
        return -abs(value)
    return -rng.randint(1, 2 ** 31)


def _boolean_flip(value: Any, _rng: random.Random) -> Any:
    if isinstance(value, bool):
        return not value
    return "false" if str(value).lower() == "true" else "true"


def _type_confusion(value: Any, rng: random.Random) -> Any:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return _as_text(value) + "abc"
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return {"items": value}
    return rng.choice([0, 1.5, True, [], {}])


def _duplicated_value(value: Any, _rng: random.Random) -> str:
    text = _as_text(value)
    return text + text


_BUILTINS: Dict[str, Callable[[Any, random.Random], Any]] = {
    "random string": _random_string,
    "empty string": lambda _v, _r: "",
    "null": lambda _v, _r: None,
    "random control chars": _random_control_chars,
    "random whitespaces": _random_whitespaces,
    "random emojis": _random_emojis,
    "zero width chars": _zero_width_chars,
    "nasty string": _nasty_string,
    "very large string": _large_string,
    "big number": _big_number,
    "negative number": _negative_number,
    "boolean flip": _boolean_flip,
    "type confusion": _type_confusion,
    "duplicated value": _duplicated_value,
}


#================funtion builtin_mutators all compiled-in mutators ##########
def builtin_mutators(rng: Optional[random.Random] = None) -> List[Mutator]:
    rng = rng or random.Random()
    return [ValueMutator(name, fn, rng) for name, fn in _BUILTINS.items()]


class CustomMutatorType(str, Enum):
    TRAIL = "TRAIL"
    INSERT = "INSERT"
    PREFIX = "PREFIX"
    REPLACE = "REPLACE"
    REPLACE_BODY = "REPLACE_BODY"
    IN_BODY = "IN_BODY"


class CustomMutatorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: CustomMutatorType
    values: List[Any]

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, v: Any) -> Any:
        return str(v).strip().upper() if v is not None else v

    @field_validator("name", mode="before")
    @classmethod
    def _name_text(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("values")
    @classmethod
    def _not_empty(cls, v: List[Any]) -> List[Any]:
        if not v:
            raise ValueError("values must contain at least one entry")
        return v


IN_BODY_KEY = "apifuzz_extra"


class CustomMutator(Mutator):
    """Mutator described by a ``CustomMutatorConfig`` file."""

    def __init__(self, config: CustomMutatorConfig, rng: Optional[random.Random] = None):
        self.config = config
        self.name = config.name
        self.rng = rng or random.Random()

    def mutate(self, payload: str, field: str) -> str:
        candidate = self.rng.choice(self.config.values)
        kind = self.config.type
        if kind is CustomMutatorType.REPLACE:
            return apply_to_field(payload, field, lambda _old: candidate)
        if kind is CustomMutatorType.TRAIL:
            return apply_to_field(payload, field, lambda old: _as_text(old) + _as_text(candidate))
        if kind is CustomMutatorType.PREFIX:
            return apply_to_field(payload, field, lambda old: _as_text(candidate) + _as_text(old))
        if kind is CustomMutatorType.INSERT:
            return apply_to_field(payload, field, lambda old: self._insert(_as_text(old), _as_text(candidate)))
        if kind is CustomMutatorType.REPLACE_BODY:
            return _as_text(candidate)
        return self._in_body(payload, candidate)

    def _insert(self, text: str, value: str) -> str:
        pos = self.rng.randint(0, len(text))
        return text[:pos] + value + text[pos:]

    @staticmethod
    def _in_body(payload: str, candidate: Any) -> str:
        body = parse_payload(payload)
        extra = candidate
        if isinstance(candidate, str):
            try:
                extra = parse_payload(candidate)
            except ValueError:
                extra = candidate
        if not isinstance(body, dict):
            return payload
        if isinstance(extra, dict):
            body.update(extra)
        else:
            body[IN_BODY_KEY] = extra
        return dump_payload(body)


#================funtion parse_custom_mutator_file one YAML file to a config ##########
def parse_custom_mutator_file(path: Union[str, Path]) -> CustomMutatorConfig:
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("custom mutator file must be a key/value mapping")
    missing = [k for k in ("name", "type", "values") if raw.get(k) is None]
    if missing:
        raise ValueError(f"missing required keys: {missing}")
    return CustomMutatorConfig.model_validate(raw)


#================funtion load_custom_mutators parse every file of a folder ##########
def load_custom_mutators(folder: Union[str, Path], rng: Optional[random.Random] = None) -> List[Mutator]:
    folder = Path(folder)
    if not folder.is_dir():
        logger.error("Invalid custom Mutators folder %s", folder.resolve())
        return []
    rng = rng or random.Random()
    out: List[Mutator] = []
    for entry in sorted(folder.iterdir()):
        if not entry.is_file():
            continue
        try:
            out.append(CustomMutator(parse_custom_mutator_file(entry), rng))
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError, ValueError) as e:
            logger.warning("There was a problem parsing %s: %s", entry.resolve(), e)
    logger.info("Loaded %d custom mutators from %s", len(out), folder)
    return out


#================funtion resolve_mutators built-ins or the custom folder ##########
def resolve_mutators(mutators_folder: Optional[Union[str, Path]] = None,
                     rng: Optional[random.Random] = None) -> List[Mutator]:
    if mutators_folder is None:
        return builtin_mutators(rng)
    return load_custom_mutators(mutators_folder, rng)
