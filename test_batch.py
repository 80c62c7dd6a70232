from __future__ import annotations

import struct
import unittest

from sfoedit.batch import Command, get, query, render_listing, run_batch
from sfoedit.codec import load, serialize
from sfoedit.constants import HEADER_SIZE, KIND_INTEGER, PSF_MAGIC
from sfoedit.document import Document
from sfoedit.errors import DuplicateKeyError, InvalidValueError, NotFoundError, ParseError
from sfoedit.mutate import add_entry


def _doc() -> Document:
    doc = Document.new()
    add_entry(doc, "str", "TITLE", "My Game")
    add_entry(doc, "int", "PARENTAL_LEVEL", "5")
    return doc


def _gapped_bytes() -> bytes:
    """Two integers whose value offsets leave a 4-byte hole holding 0xDEAD."""
    keys = b"A\x00B\x00"
    key_table = HEADER_SIZE + 2 * 16
    out = struct.pack("<4sIIII", PSF_MAGIC, 0x101, key_table, key_table + len(keys), 2)
    out += struct.pack("<HHIII", 0, KIND_INTEGER, 4, 4, 0)
    out += struct.pack("<HHIII", 2, KIND_INTEGER, 4, 4, 8)
    out += keys
    out += struct.pack("<III", 1, 0xDEAD, 2)
    return out


class CommandTests(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(
            Command.parse("add", ["STR", "title", "x"]),
            Command(action="add", key="title", value="x", type="str"),
        )
        self.assertEqual(Command.parse("edit", ["TITLE", "y"]), Command(action="edit", key="TITLE", value="y"))
        self.assertEqual(Command.parse("delete", ["TITLE"]), Command(action="delete", key="TITLE"))

    def test_parse_rejects_bad_input(self):
        with self.assertRaises(InvalidValueError):
            Command.parse("add", ["float", "K", "1.0"])
        with self.assertRaises(InvalidValueError):
            Command.parse("edit", ["K"])
        with self.assertRaises(InvalidValueError):
            Command.parse("rename", ["K"])


class BatchTests(unittest.TestCase):
    def test_batch_applies_in_order(self):
        doc = _doc()
        cmds = [
            Command.parse("add", ["str", "VERSION", "01.00"]),
            Command.parse("edit", ["VERSION", "02.00"]),
            Command.parse("delete", ["PARENTAL_LEVEL"]),
            Command.parse("set", ["int", "APP_TYPE", "0x1"]),
        ]
        result = run_batch(doc, cmds)
        self.assertEqual(result.applied, cmds)
        self.assertEqual(result.skipped, [])
        out = result.document
        self.assertEqual(out.keys(), ["APP_TYPE", "TITLE", "VERSION"])
        self.assertEqual(get(out, "VERSION"), "02.00")
        self.assertTrue(out.verify(), out.problems())
        # input document is not modified
        self.assertEqual(doc.keys(), ["PARENTAL_LEVEL", "TITLE"])

    def test_failed_batch_leaves_document_untouched(self):
        doc = _doc()
        before = serialize(doc)
        cmds = [Command.parse("add", ["str", "K", "1"]), Command.parse("add", ["str", "K", "2"])]
        with self.assertRaises(DuplicateKeyError):
            run_batch(doc, cmds)
        self.assertEqual(serialize(doc), before)

    def test_force_skips_missing_and_duplicate(self):
        doc = _doc()
        cmds = [
            Command.parse("add", ["str", "K", "1"]),
            Command.parse("add", ["str", "K", "2"]),
            Command.parse("delete", ["MISSING"]),
            Command.parse("edit", ["K", "3"]),
        ]
        result = run_batch(doc, cmds, force=True)
        self.assertEqual([c for c, _ in result.skipped], [cmds[1], cmds[2]])
        self.assertIsInstance(result.skipped[0][1], DuplicateKeyError)
        self.assertIsInstance(result.skipped[1][1], NotFoundError)
        self.assertEqual(get(result.document, "K"), "3")

    def test_force_does_not_swallow_value_errors(self):
        doc = _doc()
        cmds = [Command.parse("edit", ["PARENTAL_LEVEL", "lots"])]
        with self.assertRaises(InvalidValueError):
            run_batch(doc, cmds, force=True)

    def test_inconsistent_document_is_refused(self):
        data = _gapped_bytes()
        doc = load(data)
        self.assertEqual(doc.value("B"), 2)
        self.assertFalse(doc.verify())
        for force in (False, True):
            with self.subTest(force=force):
                with self.assertRaises(ParseError) as ctx:
                    run_batch(doc, [Command.parse("delete", ["A"])], force=force)
                self.assertIn("value offset 8", str(ctx.exception))
        self.assertEqual(serialize(doc), data)
        self.assertEqual(get(doc, "B"), "0x00000002")


class QueryTests(unittest.TestCase):
    def test_render_modes(self):
        doc = _doc()
        self.assertEqual(get(doc, "parental_level"), "0x00000005")
        self.assertEqual(get(doc, "PARENTAL_LEVEL", decimal=True), "5")
        self.assertEqual(get(doc, "TITLE"), "My Game")
        self.assertIsNone(query(doc, "NOPE"))
        with self.assertRaises(NotFoundError):
            get(doc, "NOPE")

    def test_listing(self):
        self.assertEqual(render_listing(_doc()), ["PARENTAL_LEVEL=0x00000005", "TITLE=My Game"])

    def test_unknown_kind_listed_byte_swapped(self):
        doc = _doc()
        doc.entry("TITLE").kind = 0x0102
        self.assertEqual(render_listing(doc), ["PARENTAL_LEVEL=0x00000005", "[UNKNOWN DATA TYPE: 0201]"])
        self.assertEqual(get(doc, "TITLE"), "[UNKNOWN DATA TYPE: 0201]")


if __name__ == "__main__":
    unittest.main()
