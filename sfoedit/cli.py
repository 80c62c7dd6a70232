from __future__ import annotations

import argparse
import sys
from typing import List, Optional, Sequence

from sfoedit import __version__
from sfoedit.batch import Command, Options, query, render_listing, run_batch
from sfoedit.codec import LoadedDocument, read_file, save, save_loaded
from sfoedit.constants import KIND_INTEGER, KIND_SPECIAL_STRING, KIND_SPECIAL_STRING_ALT, KIND_STRING
from sfoedit.document import Document
from sfoedit.errors import (
    AllocationError,
    ContainerError,
    InvalidValueError,
    ParseError,
    SfoError,
)


_KIND_LABELS = {
    KIND_STRING: "utf8",
    KIND_SPECIAL_STRING: "utf8-S",
    KIND_SPECIAL_STRING_ALT: "utf8-S",
    KIND_INTEGER: "int32",
}


def cmd_list(path: str, *, decimal: bool = False) -> bool:
    """Print every parameter as KEY=value.

    Args:
        path: param.sfo or PKG file.
        decimal: Render integers in decimal instead of 0x%08x.
    """
    loaded = read_file(path)
    for line in render_listing(loaded.document, decimal=decimal):
        print(line)
    return True


def cmd_query(path: str, key: str, *, decimal: bool = False) -> bool:
    """Print the value of a single parameter.

    Returns:
        False if the key does not exist.
    """
    loaded = read_file(path)
    return _print_query(loaded.document, key, decimal=decimal)


def _print_query(doc: Document, key: str, *, decimal: bool) -> bool:
    value = query(doc, key, decimal=decimal)
    if value is None:
        return False
    print(value)
    return True


def cmd_debug(path: str) -> bool:
    """Print the header and directory table of a document."""
    loaded = read_file(path)
    doc = loaded.document
    h = doc.header
    if loaded.in_container:
        print(f"PKG param.sfo offset: 0x{loaded.container_offset:X}")
    print("Header:")
    print(f"  magic: {h.magic.hex()}")
    print(f"  version: 0x{h.version:08X}")
    print(f"  key_table_offset: 0x{h.key_table_offset:X}")
    print(f"  value_table_offset: 0x{h.value_table_offset:X}")
    print(f"  entries_count: {h.entries_count}")
    print("Entries:")
    print("  #   key_off kind   len    max    val_off key")
    for i, e in enumerate(doc):
        label = _KIND_LABELS.get(e.kind, "?")
        print(
            f"  {i:<3} 0x{e.key_offset:04X}  {e.kind:04X}   {e.length:<6} {e.max_length:<6} "
            f"0x{e.value_offset:04X}  {e.key} ({label})"
        )
    problems = doc.problems()
    for p in problems:
        print(f"Warning: {p}", file=sys.stderr)
    return not problems


def cmd_apply(
    path: str,
    commands: Sequence[Command],
    *,
    options: Optional[Options] = None,
    output: Optional[str] = None,
    new: bool = False,
) -> bool:
    """Run a batch of commands and write the result.

    The output file is written only if every command succeeded (or was
    tolerated with ``options.force``).

    Args:
        path: Input file; with ``new`` it is the file to create.
        commands: Ordered add/delete/edit/set commands.
        options: Display, tolerate-failure and query settings.
        output: Destination path; defaults to ``path``.
        new: Start from an empty document instead of reading ``path``.

    Returns:
        The query result when ``options.query`` is set, else True.
    """
    options = options or Options()
    if new:
        loaded = LoadedDocument(document=Document.new(), path=path)
    else:
        loaded = read_file(path)
    result = run_batch(loaded.document, commands, force=options.force)
    for cmd, exc in result.skipped:
        print(f"Warning: skipped {cmd.describe()}: {exc}", file=sys.stderr)
    if new:
        save(result.document, output or path)
    else:
        save_loaded(loaded, result.document, output)
    if options.query:
        return _print_query(result.document, options.query, decimal=options.decimal)
    return True


class _CommandAction(argparse.Action):
    """Append (action, args) to a single ordered command list."""

    def __call__(self, parser, namespace, values, option_string=None):
        commands = list(getattr(namespace, self.dest, None) or [])
        try:
            commands.append(Command.parse(self.const, list(values)))
        except InvalidValueError as exc:
            parser.error(f"{option_string}: {exc}")
        setattr(namespace, self.dest, commands)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="sfoedit",
        description="Print and edit param.sfo parameters of a param.sfo or PS4 PKG file.",
        epilog=(
            "Commands run in the order given. The file is written only if every command succeeds; "
            "use --force to skip commands on missing or duplicate keys instead of aborting."
        ),
    )
    ap.add_argument("file", help="param.sfo or PKG file")
    ap.add_argument("key", nargs="?", help="Print only the value of this key")
    ap.add_argument(
        "-a",
        "--add",
        dest="commands",
        action=_CommandAction,
        const="add",
        nargs=3,
        metavar=("TYPE", "KEY", "VALUE"),
        help="Add a new parameter (TYPE: str or int)",
    )
    ap.add_argument(
        "-d", "--delete", dest="commands", action=_CommandAction, const="delete", nargs=1, metavar="KEY",
        help="Delete a parameter",
    )
    ap.add_argument(
        "-e", "--edit", dest="commands", action=_CommandAction, const="edit", nargs=2, metavar=("KEY", "VALUE"),
        help="Change an existing parameter's value",
    )
    ap.add_argument(
        "-s",
        "--set",
        dest="commands",
        action=_CommandAction,
        const="set",
        nargs=3,
        metavar=("TYPE", "KEY", "VALUE"),
        help="Add or replace a parameter",
    )
    ap.add_argument("-o", "--output-file", dest="output", help="Write to this file instead of the input file")
    ap.add_argument("-f", "--force", action="store_true", help="Skip commands on missing/duplicate keys instead of aborting")
    ap.add_argument("--decimal", action="store_true", help="Print integers in decimal")
    ap.add_argument("-q", "--query", metavar="KEY", help="After running commands, print this key's value")
    ap.add_argument("--new", action="store_true", help="Create a new param.sfo instead of reading FILE")
    ap.add_argument("--debug", action="store_true", help="Print header and directory table")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.set_defaults(commands=[])
    return ap


def main(argv: List[str] | None = None):
    ap = build_parser()
    args = ap.parse_args(argv)
    editing = bool(args.commands or args.new)
    if args.debug and editing:
        ap.error("--debug cannot be combined with commands or --new")
    if args.output and not editing:
        ap.error("--output-file requires at least one command or --new")
    lookup_key = args.query or args.key
    try:
        if editing:
            options = Options(decimal=args.decimal, force=args.force, query=lookup_key)
            success = cmd_apply(args.file, args.commands, options=options, output=args.output, new=args.new)
        elif args.debug:
            success = cmd_debug(args.file)
        elif lookup_key:
            success = cmd_query(args.file, lookup_key, decimal=args.decimal)
        else:
            success = cmd_list(args.file, decimal=args.decimal)
        sys.exit(0 if success else 1)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ContainerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except AllocationError as e:
        print(f"Error: out of memory: {e}", file=sys.stderr)
        sys.exit(2)
    except (SfoError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
