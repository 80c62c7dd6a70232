"""
sfoedit — read and edit PS4 param.sfo (PSF) parameter files.

Features:

- Parse a bare param.sfo or locate it inside a PS4 PKG file.
- Add, delete, edit and set parameters while keeping the directory, key
  table and value table offsets consistent.
- Batches of commands apply all-or-nothing; the output is written only
  after the whole batch succeeds.
- Byte-exact round trip of documents written by this codec.

See sfoedit.codec for load/serialize and sfoedit.mutate for the editing
operations.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "reserved",
    "blob",
    "document",
    "codec",
    "mutate",
    "batch",
    "pkg",
    "cli",
]
