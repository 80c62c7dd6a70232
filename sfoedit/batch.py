from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .constants import INTEGER_SIZE, TYPE_NAMES
from .document import Document, Entry
from .errors import InvalidValueError, NotFoundError, ParseError, SfoError, TOLERABLE_ERRORS
from .mutate import add_entry, delete_entry, edit_entry, set_entry


ACTIONS = ("add", "delete", "edit", "set")


@dataclass(frozen=True)
class Command:
    action: str
    key: str
    value: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def parse(cls, action: str, args: Sequence[str]) -> "Command":
        """Build a command from its argument tuple.

        add/set take (TYPE, KEY, VALUE), edit takes (KEY, VALUE), delete takes (KEY,).
        """
        if action in ("add", "set"):
            if len(args) != 3:
                raise InvalidValueError(f"{action} expects TYPE KEY VALUE")
            type_name, key, value = args
            if type_name.lower() not in TYPE_NAMES:
                raise InvalidValueError(f"unknown type {type_name!r} (expected one of: {', '.join(TYPE_NAMES)})")
            return cls(action=action, key=key, value=value, type=type_name.lower())
        if action == "edit":
            if len(args) != 2:
                raise InvalidValueError("edit expects KEY VALUE")
            return cls(action=action, key=args[0], value=args[1])
        if action == "delete":
            if len(args) != 1:
                raise InvalidValueError("delete expects KEY")
            return cls(action=action, key=args[0])
        raise InvalidValueError(f"unknown action {action!r}")

    def describe(self) -> str:
        parts = [self.action]
        if self.type:
            parts.append(self.type)
        parts.append(self.key.upper())
        if self.value is not None:
            parts.append(repr(self.value))
        return " ".join(parts)


@dataclass
class Options:
    decimal: bool = False  # render integers in decimal instead of 0x%08x
    force: bool = False  # tolerate missing/duplicate keys instead of aborting
    query: Optional[str] = None


@dataclass
class BatchResult:
    document: Document
    applied: List[Command] = field(default_factory=list)
    skipped: List[Tuple[Command, SfoError]] = field(default_factory=list)


def apply_command(doc: Document, command: Command) -> bool:
    if command.action == "add":
        return add_entry(doc, command.type or "str", command.key, command.value or "")
    if command.action == "delete":
        return delete_entry(doc, command.key)
    if command.action == "edit":
        return edit_entry(doc, command.key, command.value or "")
    if command.action == "set":
        return set_entry(doc, command.type or "str", command.key, command.value or "")
    raise InvalidValueError(f"unknown action {command.action!r}")


def run_batch(doc: Document, commands: Iterable[Command], *, force: bool = False) -> BatchResult:
    """Apply ``commands`` in order to a copy of ``doc``.

    Without ``force`` the first failing command propagates its error and
    ``doc`` is left untouched. With ``force``, missing and duplicate keys
    are recorded in ``skipped`` and the batch continues; any other error
    still aborts.

    Documents whose directory offsets do not match the tables are refused
    with ``ParseError`` before any command runs.
    """
    problems = doc.problems()
    if problems:
        raise ParseError("refusing to edit an inconsistent document: " + "; ".join(problems))
    result = BatchResult(document=doc.copy())
    for cmd in commands:
        try:
            apply_command(result.document, cmd)
        except TOLERABLE_ERRORS as exc:
            if not force:
                raise
            result.skipped.append((cmd, exc))
            continue
        result.applied.append(cmd)
    return result


def render_value(doc: Document, entry: Entry, *, decimal: bool = False) -> str:
    raw = doc.raw_value(entry)
    if entry.is_string:
        return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
    if entry.is_integer:
        n = struct.unpack("<I", raw[:INTEGER_SIZE].ljust(INTEGER_SIZE, b"\x00"))[0]
        return str(n) if decimal else f"0x{n:08x}"
    return unknown_kind_message(entry.kind)


def unknown_kind_message(kind: int) -> str:
    # kind is shown in on-disk byte order
    swapped = ((kind >> 8) | (kind << 8)) & 0xFFFF
    return f"[UNKNOWN DATA TYPE: {swapped:04X}]"


def get(doc: Document, key: str, *, decimal: bool = False) -> str:
    return render_value(doc, doc.entry(key), decimal=decimal)


def query(doc: Document, key: str, *, decimal: bool = False) -> Optional[str]:
    try:
        return get(doc, key, decimal=decimal)
    except NotFoundError:
        return None


def render_listing(doc: Document, *, decimal: bool = False) -> List[str]:
    lines = []
    for e in doc:
        if e.is_string or e.is_integer:
            lines.append(f"{e.key}={render_value(doc, e, decimal=decimal)}")
        else:
            lines.append(unknown_kind_message(e.kind))
    return lines
