from __future__ import annotations

import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .constants import ENTRY_SIZE, ENTRY_STRUCT, HEADER_SIZE, HEADER_STRUCT, PSF_MAGIC
from .document import Document, Entry, Header
from .errors import BadMagicError, ContainerError, ParseError, TruncatedInputError
from .pkg import locate_document


PathLike = Union[str, "os.PathLike[str]"]


def _take(data: bytes, offset: int, n: int, what: str) -> bytes:
    if offset < 0 or offset + n > len(data):
        raise TruncatedInputError(f"Unexpected EOF reading {what} ({n} bytes at 0x{offset:X})")
    return bytes(data[offset : offset + n])


def load(data: bytes, offset: int = 0) -> Document:
    """Parse a PSF document starting at ``offset`` in ``data``.

    Table offsets in the header are relative to the document start.
    """
    head = _take(data, offset, HEADER_SIZE, "header")
    if head[:4] != PSF_MAGIC:
        raise BadMagicError("param.sfo magic not found")
    magic, version, key_table_offset, value_table_offset, count = HEADER_STRUCT.unpack(head)
    if key_table_offset > value_table_offset:
        raise ParseError(
            f"key table offset 0x{key_table_offset:X} lies after value table offset 0x{value_table_offset:X}"
        )
    header = Header(
        magic=magic,
        version=version,
        key_table_offset=key_table_offset,
        value_table_offset=value_table_offset,
        entries_count=count,
    )

    directory = _take(data, offset + HEADER_SIZE, count * ENTRY_SIZE, "directory")
    entries = []
    for i in range(count):
        key_off, kind, length, max_length, value_off = ENTRY_STRUCT.unpack_from(directory, i * ENTRY_SIZE)
        entries.append(
            Entry(key_offset=key_off, kind=kind, length=length, max_length=max_length, value_offset=value_off)
        )

    key_blob = bytearray(_take(data, offset + key_table_offset, value_table_offset - key_table_offset, "key table"))
    value_size = entries[-1].value_offset + entries[-1].max_length if entries else 0
    value_blob = bytearray(_take(data, offset + value_table_offset, value_size, "value table"))

    for e in entries:
        end = key_blob.find(b"\x00", e.key_offset)
        if e.key_offset >= len(key_blob) or end < 0:
            raise ParseError(f"key offset 0x{e.key_offset:X} outside key table")
        try:
            e.key = key_blob[e.key_offset : end].decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"key at 0x{e.key_offset:X} is not valid UTF-8") from exc
        if e.length > e.max_length:
            raise ParseError(f"{e.key}: length {e.length} exceeds max length {e.max_length}")
        if e.value_offset + e.max_length > len(value_blob):
            raise ParseError(f"{e.key}: value lies outside the value table")

    return Document(header=header, entries=entries, key_blob=key_blob, value_blob=value_blob)


def serialize(doc: Document) -> bytes:
    header = doc.layout()
    out = bytearray(
        HEADER_STRUCT.pack(
            header.magic,
            header.version,
            header.key_table_offset,
            header.value_table_offset,
            header.entries_count,
        )
    )
    for e in doc.entries:
        out += ENTRY_STRUCT.pack(e.key_offset, e.kind, e.length, e.max_length, e.value_offset)
    out += doc.key_blob
    out += doc.value_blob
    return bytes(out)


@dataclass
class LoadedDocument:
    document: Document
    path: str
    container_offset: int = 0

    @property
    def in_container(self) -> bool:
        return self.container_offset != 0


def read_file(path: PathLike) -> LoadedDocument:
    """Read a bare param.sfo or the param.sfo embedded in a PKG file."""
    with open(path, "rb") as f:
        data = f.read()
    offset = locate_document(data)
    return LoadedDocument(document=load(data, offset), path=str(path), container_offset=offset)


def _target_mode(dst: Path) -> int:
    """Mode for a rewritten file: keep the existing one, else honor the umask."""
    try:
        return stat.S_IMODE(dst.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save(doc: Document, path: PathLike) -> None:
    """Write ``doc`` to ``path`` through a temp file and an atomic rename."""
    payload = serialize(doc)
    dst = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=".sfoedit-", suffix=".tmp", dir=str(dst.parent))
    tmp = Path(tmp_name)
    try:
        os.chmod(tmp_name, _target_mode(dst))
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(str(tmp), str(dst))
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def save_loaded(loaded: LoadedDocument, doc: Document, output: PathLike | None = None) -> str:
    """Save a modified document back to its source, or to ``output``.

    Documents read from inside a PKG are never written back into the PKG.
    """
    if output is None:
        if loaded.in_container:
            raise ContainerError("refusing to write param.sfo into a PKG file; pass an output path")
        output = loaded.path
    save(doc, output)
    return str(output)
