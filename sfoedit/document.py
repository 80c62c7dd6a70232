from __future__ import annotations

import bisect
import copy
import struct
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from .constants import (
    ALIGNMENT,
    DEFAULT_VERSION,
    ENTRY_SIZE,
    HEADER_SIZE,
    INTEGER_SIZE,
    KIND_INTEGER,
    PSF_MAGIC,
    STRING_KINDS,
)
from .errors import InvalidValueError, NotFoundError


@dataclass
class Header:
    magic: bytes = PSF_MAGIC
    version: int = DEFAULT_VERSION
    key_table_offset: int = HEADER_SIZE
    value_table_offset: int = HEADER_SIZE
    entries_count: int = 0


@dataclass
class Entry:
    key_offset: int
    kind: int
    length: int
    max_length: int
    value_offset: int
    key: str = ""

    @property
    def is_string(self) -> bool:
        return self.kind in STRING_KINDS

    @property
    def is_integer(self) -> bool:
        return self.kind == KIND_INTEGER

    @property
    def key_size(self) -> int:
        """Bytes the key occupies in the key table, terminator included."""
        return len(self.key.encode("utf-8")) + 1


def normalize_key(key: str) -> str:
    key = key.upper()
    if not key:
        raise InvalidValueError("key must not be empty")
    if "\x00" in key:
        raise InvalidValueError("key must not contain NUL characters")
    return key


@dataclass
class Document:
    """In-memory param.sfo: header, directory, key table and value table.

    Entries are kept in key order, which is also key-table order. Offsets in
    the directory are derived data: ``reindex`` recomputes them from the
    entries' sizes and ``layout`` recomputes the header's table offsets.
    """

    header: Header = field(default_factory=Header)
    entries: List[Entry] = field(default_factory=list)
    key_blob: bytearray = field(default_factory=bytearray)
    value_blob: bytearray = field(default_factory=bytearray)

    @classmethod
    def new(cls, version: int = DEFAULT_VERSION) -> "Document":
        return cls(header=Header(version=version))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.find(key) is not None

    def keys(self) -> List[str]:
        return [e.key for e in self.entries]

    # lookup
    def find(self, key: str) -> Optional[int]:
        wanted = key.upper()
        for i, e in enumerate(self.entries):
            if e.key.upper() == wanted:
                return i
        return None

    def lookup(self, key: str) -> int:
        idx = self.find(key)
        if idx is None:
            raise NotFoundError(f"key not found: {key.upper()}")
        return idx

    def entry(self, key: str) -> Entry:
        return self.entries[self.lookup(key)]

    def insertion_index(self, key: str) -> int:
        return bisect.bisect_right([e.key.upper() for e in self.entries], key.upper())

    def used_key_bytes(self) -> int:
        return sum(e.key_size for e in self.entries)

    def raw_value(self, entry: Entry) -> bytes:
        return bytes(self.value_blob[entry.value_offset : entry.value_offset + entry.length])

    def value(self, key: str) -> Union[str, int, bytes]:
        e = self.entry(key)
        raw = self.raw_value(e)
        if e.is_string:
            return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
        if e.is_integer:
            return struct.unpack("<I", raw[:INTEGER_SIZE].ljust(INTEGER_SIZE, b"\x00"))[0]
        return raw

    # layout
    def reindex(self) -> None:
        key_off = 0
        value_off = 0
        for e in self.entries:
            e.key_offset = key_off
            e.value_offset = value_off
            key_off += e.key_size
            value_off += e.max_length
        self.header.entries_count = len(self.entries)

    def layout(self) -> Header:
        self.header.entries_count = len(self.entries)
        self.header.key_table_offset = HEADER_SIZE + len(self.entries) * ENTRY_SIZE
        self.header.value_table_offset = self.header.key_table_offset + len(self.key_blob)
        return self.header

    def problems(self) -> List[str]:
        """Return a description of every layout invariant the document violates."""
        out: List[str] = []
        if self.header.entries_count != len(self.entries):
            out.append(f"header counts {self.header.entries_count} entries, directory has {len(self.entries)}")
        names = [e.key.upper() for e in self.entries]
        if names != sorted(names) or len(set(names)) != len(names):
            out.append("entries are not in strictly ascending key order")
        if len(self.key_blob) % ALIGNMENT:
            out.append(f"key table length {len(self.key_blob)} is not a multiple of {ALIGNMENT}")
        key_off = 0
        value_off = 0
        for e in self.entries:
            if e.key_offset != key_off:
                out.append(f"{e.key}: key offset {e.key_offset}, expected {key_off}")
            stored = bytes(self.key_blob[e.key_offset : e.key_offset + e.key_size])
            if stored != e.key.encode("utf-8") + b"\x00":
                out.append(f"{e.key}: key table holds {stored!r}")
            if e.value_offset != value_off:
                out.append(f"{e.key}: value offset {e.value_offset}, expected {value_off}")
            if e.length > e.max_length:
                out.append(f"{e.key}: length {e.length} exceeds max length {e.max_length}")
            if e.is_string and e.max_length % ALIGNMENT:
                out.append(f"{e.key}: string max length {e.max_length} is not a multiple of {ALIGNMENT}")
            key_off += e.key_size
            value_off += e.max_length
        if len(self.value_blob) != value_off:
            out.append(f"value table holds {len(self.value_blob)} bytes, entries reserve {value_off}")
        return out

    def verify(self) -> bool:
        return not self.problems()

    def copy(self) -> "Document":
        return copy.deepcopy(self)
