"""
Resizable byte tables.

The key and value tables of a document are plain ``bytearray`` objects that
grow and shrink in place. Callers that resize the value table are expected
to fix up entry offsets in the same operation (see ``Document.reindex``).
"""

from __future__ import annotations

from .constants import ALIGNMENT
from .errors import AllocationError, ValueTooLargeError


def round_up(n: int, alignment: int = ALIGNMENT) -> int:
    return (n + alignment - 1) // alignment * alignment


def expand(blob: bytearray, offset: int, count: int) -> bytearray:
    """Insert ``count`` zero bytes at ``offset``, shifting the tail forward."""
    if offset < 0 or offset > len(blob):
        raise ValueError(f"expand offset {offset} outside table of {len(blob)} bytes")
    if count < 0:
        raise ValueError("expand count must be non-negative")
    if count:
        try:
            blob[offset:offset] = bytes(count)
        except MemoryError as exc:
            raise AllocationError(f"cannot grow table by {count} bytes") from exc
    return blob


def shrink(blob: bytearray, offset: int, count: int) -> bytearray:
    """Remove ``count`` bytes at ``offset``, shifting the tail backward."""
    if count < 0:
        raise ValueError("shrink count must be non-negative")
    if offset < 0 or offset + count > len(blob):
        raise ValueError(f"shrink range {offset}+{count} outside table of {len(blob)} bytes")
    del blob[offset : offset + count]
    return blob


def align4(blob: bytearray) -> bytearray:
    """Normalize trailing padding: one terminator, then NULs up to a 4-byte boundary."""
    end = len(blob)
    while end and blob[end - 1] == 0:
        end -= 1
    del blob[end:]
    if blob:
        blob.append(0)
    blob.extend(bytes(-len(blob) % ALIGNMENT))
    return blob


def write_at(blob: bytearray, offset: int, data: bytes, capacity: int) -> None:
    if len(data) > capacity:
        raise ValueTooLargeError(f"{len(data)} bytes do not fit in a {capacity}-byte slot")
    if offset < 0 or offset + capacity > len(blob):
        raise ValueError(f"slot {offset}+{capacity} outside table of {len(blob)} bytes")
    blob[offset : offset + capacity] = data + bytes(capacity - len(data))
