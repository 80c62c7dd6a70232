"""
Locate the param.sfo document inside a PS4 PKG file.

Only the PKG header and file table are consulted: the table is scanned
linearly for the param.sfo record and its offset returned. PKG fields are
big-endian, unlike the little-endian PSF document itself.
"""

from __future__ import annotations

import struct

from .constants import (
    PKG_ENTRY_COUNT_OFFSET,
    PKG_MAGIC,
    PKG_PARAM_SFO_ID,
    PKG_TABLE_ENTRY_STRUCT,
    PKG_TABLE_OFFSET_OFFSET,
)
from .errors import ContainerError, TruncatedInputError


def is_pkg(data: bytes) -> bool:
    return bytes(data[: len(PKG_MAGIC)]) == PKG_MAGIC


def _u32be(data: bytes, offset: int) -> int:
    if offset + 4 > len(data):
        raise TruncatedInputError(f"PKG header truncated at 0x{offset:X}")
    return struct.unpack_from(">I", data, offset)[0]


def find_param_sfo(data: bytes) -> int:
    count = _u32be(data, PKG_ENTRY_COUNT_OFFSET)
    table = _u32be(data, PKG_TABLE_OFFSET_OFFSET)
    for i in range(count):
        pos = table + i * PKG_TABLE_ENTRY_STRUCT.size
        if pos + PKG_TABLE_ENTRY_STRUCT.size > len(data):
            raise TruncatedInputError(f"PKG file table truncated at entry {i}")
        entry_id, _name, _flags1, _flags2, offset, _size, _pad = PKG_TABLE_ENTRY_STRUCT.unpack_from(data, pos)
        if entry_id == PKG_PARAM_SFO_ID:
            return offset
    raise ContainerError("Could not find param.sfo inside PKG file")


def locate_document(data: bytes) -> int:
    """Return the byte offset of the PSF document: 0 unless ``data`` is a PKG."""
    if is_pkg(data):
        return find_param_sfo(data)
    return 0
