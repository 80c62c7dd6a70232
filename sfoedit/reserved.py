"""
Minimum value capacities for well-known param.sfo keys.

Consumers of these fields expect fixed-size slots, so a newly created
string entry never gets less room than listed here even when its initial
value is shorter.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Optional


_RESERVED = {
    "APP_VER": 8,
    "CATEGORY": 4,
    "CONTENT_ID": 48,
    "FORMAT": 4,
    "PUBTOOLINFO": 512,
    "TITLE_ID": 12,
    "VERSION": 8,
}
for _n in range(1, 8):
    _RESERVED[f"SERVICE_ID_ADDCONT_ADD_{_n}"] = 20

RESERVED_LENGTHS = MappingProxyType(_RESERVED)


def reserved_length(key: str) -> Optional[int]:
    return RESERVED_LENGTHS.get(key.upper())
