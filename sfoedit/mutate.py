"""
Add, delete, edit and set operations on a ``Document``.

Every operation encodes and validates its input before it touches a table,
resizes the key/value tables through ``blob``, and finishes with
``Document.reindex`` so directory offsets always equal the running sums of
key sizes and value capacities.
"""

from __future__ import annotations

import re
import struct
from typing import Union

from .blob import align4, expand, round_up, shrink, write_at
from .constants import (
    INTEGER_SIZE,
    KIND_INTEGER,
    MAX_KEY_TABLE_SIZE,
    MAX_UINT32,
    STRING_KINDS,
    TYPE_NAMES,
)
from .document import Document, Entry, normalize_key
from .errors import (
    DuplicateKeyError,
    InvalidValueError,
    NotFoundError,
    ValueTooLargeError,
)
from .reserved import reserved_length


Value = Union[str, int]

_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")
_DEC_RE = re.compile(r"[0-9]+")


def resolve_kind(kind: Union[str, int]) -> int:
    if isinstance(kind, int):
        if kind in STRING_KINDS or kind == KIND_INTEGER:
            return kind
        raise InvalidValueError(f"unsupported value kind: 0x{kind:04X}")
    try:
        return TYPE_NAMES[kind.lower()]
    except KeyError:
        raise InvalidValueError(f"unknown type {kind!r} (expected one of: {', '.join(TYPE_NAMES)})") from None


def parse_integer(value: Value) -> int:
    """Parse an integer value; a ``0x``/``0X`` prefix selects hexadecimal."""
    if isinstance(value, int):
        n = value
    else:
        if _HEX_RE.fullmatch(value):
            n = int(value[2:], 16)
        elif _DEC_RE.fullmatch(value):
            n = int(value, 10)
        else:
            raise InvalidValueError(f"not an integer: {value!r}")
    if n < 0 or n > MAX_UINT32:
        raise ValueTooLargeError(f"integer {n} does not fit in 32 bits")
    return n


def encode_value(kind: int, value: Value) -> bytes:
    if kind == KIND_INTEGER:
        return struct.pack("<I", parse_integer(value))
    if kind in STRING_KINDS:
        text = value if isinstance(value, str) else str(value)
        return text.encode("utf-8") + b"\x00"
    raise InvalidValueError(f"unsupported value kind: 0x{kind:04X}")


def _capacity_for(kind: int, key: str, payload: bytes) -> int:
    if kind == KIND_INTEGER:
        return INTEGER_SIZE
    return max(reserved_length(key) or 0, round_up(len(payload)))


def add_entry(
    doc: Document,
    kind: Union[str, int],
    key: str,
    value: Value,
    *,
    tolerate_duplicate: bool = False,
) -> bool:
    """Insert a new parameter in key order.

    Returns False when the key already exists and ``tolerate_duplicate`` is
    set; raises ``DuplicateKeyError`` otherwise.
    """
    key = normalize_key(key)
    if doc.find(key) is not None:
        if tolerate_duplicate:
            return False
        raise DuplicateKeyError(f"key already exists: {key}")
    kind = resolve_kind(kind)
    payload = encode_value(kind, value)
    max_length = _capacity_for(kind, key, payload)
    key_bytes = key.encode("utf-8") + b"\x00"
    if doc.used_key_bytes() + len(key_bytes) > MAX_KEY_TABLE_SIZE:
        raise ValueTooLargeError("key table would exceed 65535 bytes")

    index = doc.insertion_index(key)
    if index < len(doc.entries):
        key_at = doc.entries[index].key_offset
        value_at = doc.entries[index].value_offset
    else:
        key_at = doc.used_key_bytes()
        value_at = len(doc.value_blob)

    expand(doc.key_blob, key_at, len(key_bytes))
    doc.key_blob[key_at : key_at + len(key_bytes)] = key_bytes
    align4(doc.key_blob)

    expand(doc.value_blob, value_at, max_length)
    write_at(doc.value_blob, value_at, payload, max_length)

    doc.entries.insert(
        index,
        Entry(
            key_offset=key_at,
            kind=kind,
            length=len(payload),
            max_length=max_length,
            value_offset=value_at,
            key=key,
        ),
    )
    doc.reindex()
    return True


def delete_entry(doc: Document, key: str, *, tolerate_missing: bool = False) -> bool:
    idx = doc.find(key)
    if idx is None:
        if tolerate_missing:
            return False
        raise NotFoundError(f"key not found: {key.upper()}")
    e = doc.entries[idx]
    shrink(doc.key_blob, e.key_offset, e.key_size)
    align4(doc.key_blob)
    shrink(doc.value_blob, e.value_offset, e.max_length)
    del doc.entries[idx]
    doc.reindex()
    return True


def edit_entry(doc: Document, key: str, value: Value, *, tolerate_missing: bool = False) -> bool:
    """Replace a parameter's value, keeping its kind.

    String slots grow to fit (rounded up to 4 bytes) but never shrink.
    """
    idx = doc.find(key)
    if idx is None:
        if tolerate_missing:
            return False
        raise NotFoundError(f"key not found: {key.upper()}")
    e = doc.entries[idx]
    if not (e.is_string or e.is_integer):
        raise InvalidValueError(f"{e.key}: cannot edit value of unknown kind 0x{e.kind:04X}")
    payload = encode_value(e.kind, value)
    if e.is_string and len(payload) > e.max_length:
        grown = round_up(len(payload))
        expand(doc.value_blob, e.value_offset + e.max_length, grown - e.max_length)
        e.max_length = grown
    write_at(doc.value_blob, e.value_offset, payload, e.max_length)
    e.length = len(payload)
    doc.reindex()
    return True


def set_entry(doc: Document, kind: Union[str, int], key: str, value: Value) -> bool:
    """Replace or create a parameter; never fails on the key's existence."""
    kind = resolve_kind(kind)
    encode_value(kind, value)
    delete_entry(doc, key, tolerate_missing=True)
    return add_entry(doc, kind, key, value, tolerate_duplicate=True)
