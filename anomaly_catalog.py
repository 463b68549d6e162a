########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

logger = logging.getLogger(__name__)

CONTROL_CHARS_HEADERS = "control chars headers"
CONTROL_CHARS_FIELDS = "control chars fields"
WHITESPACES = "whitespaces"
INVISIBLE_CHARS = "invisible chars"
SINGLE_CODE_POINT_EMOJIS = "single code point emojis"
MULTI_CODE_POINT_EMOJIS = "multi code point emojis"

# Header values travel as latin-1 and requests rejects CR/LF, so this set is
# limited to C0/C1 controls that survive header validation.
_CONTROL_CHARS_HEADERS: Tuple[str, ...] = (
    "\u0000", "\u0001", "\u0002", "\u0003", "\u0004", "\u0005", "\u0006", "\u0007",
    "\u0008", "\u000e", "\u000f", "\u0010", "\u0011", "\u0012", "\u0013", "\u0014",
    "\u0015", "\u0016", "\u0017", "\u0018", "\u0019", "\u001a", "\u001b", "\u007f",
    "\u0080", "\u0081", "\u0082", "\u0083", "\u0086", "\u0087", "\u0088", "\u0089",
    "\u008a", "\u008b", "\u008c", "\u008d", "\u008e", "\u008f", "\u0090", "\u0091",
    "\u0092", "\u0093", "\u0094", "\u0095", "\u0096", "\u0097", "\u0098", "\u0099",
    "\u009a", "\u009b", "\u009c", "\u009d", "\u009e", "\u009f",
)

_CONTROL_CHARS_FIELDS: Tuple[str, ...] = (
    "\r\n", "\u0000", "\u0007", "\u0008", "\u0009", "\n", "\u000b", "\u000c", "\r",
    "\u200b", "\u200c", "\u200d", "\u200e", "\u200f",
    "\u202a", "\u202b", "\u202c", "\u202d", "\u202e",
    "\u2060", "\u2061", "\u2062", "\u2063", "\u2064", "\u206d",
    "\u0015", "\u0016", "\u0017", "\u0018", "\u0019", "\u001a", "\u001b", "\u001c",
    "\u001d", "\u001e", "\u001f", "\u007f", "\u0080", "\u0081", "\u0082", "\u0083",
    "\u0085", "\u0086", "\u0087", "\u0088", "\u008a", "\u008b", "\u008c", "\u008d",
    "\u0090", "\u0091", "\u0093", "\u0094", "\u0095", "\u0096", "\u0097", "\u0098",
    "\u0099", "\u009a", "\u009b", "\u009c", "\u009d", "\u009e", "\u009f",
    "\ufeff", "\ufffe", "\u00ad",
)

_WHITESPACES: Tuple[str, ...] = (
    " ", "\u1680", "\u2000", "\u2001", "\u2002", "\u2003", "\u2004", "\u2005",
    "\u2006", "\u2007", "\u2008", "\u2009", "\u200a", "\u2028", "\u2029", "\u202f",
    "\u205f", "\u3000", "\u00a0", "\u180e",
)

_INVISIBLE_CHARS: Tuple[str, ...] = (
    "\u200b", "\u200c", "\u200d", "\u200e", "\u200f", "\u2060", "\u2061", "\u2062",
    "\u2063", "\u2064", "\ufeff", "\u00ad", "\u034f", "\u180e", "\u115f", "\u1160",
    "\u3164", "\uffa0",
)

_SINGLE_CODE_POINT_EMOJIS: Tuple[str, ...] = (
    "\U0001f47b", "\U0001f955", "\U0001f4a5", "\U0001f40d", "\U0001f4a9",
    "\U0001f631", "\U0001f680", "\U0001f525", "\u2764", "\U0001f600",
)

_MULTI_CODE_POINT_EMOJIS: Tuple[str, ...] = (
    "\U0001f469\u200d\U0001f680",
    "\U0001f468\u200d\U0001f469\u200d\U0001f467\u200d\U0001f466",
    "\U0001f3f3\ufe0f\u200d\U0001f308",
    "\U0001f1f7\U0001f1f4",
    "\U0001f44d\U0001f3fd",
    "\U0001f9d1\U0001f3fb\u200d\U0001f4bb",
    "\U0001f441\ufe0f\u200d\U0001f5e8\ufe0f",
    "\u2764\ufe0f\u200d\U0001f525",
)


class AnomalyCatalog:
    """Named, ordered groups of anomalous strings."""

    DEFAULT_GROUPS: Dict[str, Tuple[str, ...]] = {
        CONTROL_CHARS_HEADERS: _CONTROL_CHARS_HEADERS,
        CONTROL_CHARS_FIELDS: _CONTROL_CHARS_FIELDS,
        WHITESPACES: _WHITESPACES,
        INVISIBLE_CHARS: _INVISIBLE_CHARS,
        SINGLE_CODE_POINT_EMOJIS: _SINGLE_CODE_POINT_EMOJIS,
        MULTI_CODE_POINT_EMOJIS: _MULTI_CODE_POINT_EMOJIS,
    }

    def __init__(self, extra_groups: Dict[str, Iterable[str]] | None = None):
        self._groups: Dict[str, Tuple[str, ...]] = dict(self.DEFAULT_GROUPS)
        for name, values in (extra_groups or {}).items():
            self._groups[name] = tuple(values)

    def get(self, group: str) -> Tuple[str, ...]:
        try:
            return self._groups[group]
        except KeyError:
            raise KeyError(f"unknown anomaly group: {group!r}") from None

    def groups(self) -> List[str]:
        return list(self._groups)

    def __contains__(self, group: str) -> bool:
        return group in self._groups

    #================funtion with_nasty_strings add a dictionary loaded from disk ##########
    def with_nasty_strings(self, group: str, path: Union[str, Path]) -> "AnomalyCatalog":
        extra = {k: v for k, v in self._groups.items() if k not in self.DEFAULT_GROUPS}
        extra[group] = load_nasty_strings(path)
        return AnomalyCatalog(extra)


DEFAULT_CATALOG = AnomalyCatalog()


#================funtion load_nasty_strings read a strings dictionary file ##########
def load_nasty_strings(path: Union[str, Path]) -> List[str]:
    """Read one entry per line, skipping blank lines and ``# `` comments.

    Read errors propagate as ``OSError``; callers treat them per test case.
    """
    text = Path(path).read_text(encoding="utf-8")
    entries = []
    # split on \n only, the dictionaries themselves carry unicode line separators
    for line in text.split("\n"):
        if not line.strip() or line.startswith("# "):
            continue
        entries.append(line)
    logger.debug("Loaded %d nasty strings from %s", len(entries), path)
    return entries
