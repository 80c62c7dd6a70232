from __future__ import annotations

import os
import stat
import struct
import tempfile
import unittest
from pathlib import Path

from sfoedit.codec import load, read_file, save, serialize
from sfoedit.constants import HEADER_SIZE, KIND_INTEGER, KIND_SPECIAL_STRING, KIND_STRING, PSF_MAGIC
from sfoedit.document import Document
from sfoedit.errors import BadMagicError, ParseError, TruncatedInputError
from sfoedit.mutate import add_entry


def _sample_bytes() -> bytes:
    """A two-entry document laid out by hand: CATEGORY=gd, PARENTAL_LEVEL=5."""
    keys = b"CATEGORY\x00PARENTAL_LEVEL\x00"
    keys += b"\x00" * (-len(keys) % 4)
    key_table = HEADER_SIZE + 2 * 16
    value_table = key_table + len(keys)
    out = struct.pack("<4sIIII", PSF_MAGIC, 0x101, key_table, value_table, 2)
    out += struct.pack("<HHIII", 0, KIND_STRING, 3, 4, 0)
    out += struct.pack("<HHIII", 9, KIND_INTEGER, 4, 4, 4)
    out += keys
    out += b"gd\x00\x00" + struct.pack("<I", 5)
    return out


class CodecTests(unittest.TestCase):
    def test_load_sample(self):
        doc = load(_sample_bytes())
        self.assertEqual(doc.header.version, 0x101)
        self.assertEqual(doc.keys(), ["CATEGORY", "PARENTAL_LEVEL"])
        self.assertEqual(doc.value("category"), "gd")
        self.assertEqual(doc.value("PARENTAL_LEVEL"), 5)
        self.assertTrue(doc.verify(), doc.problems())

    def test_roundtrip_is_byte_exact(self):
        data = _sample_bytes()
        self.assertEqual(serialize(load(data)), data)

    def test_roundtrip_empty_document(self):
        data = serialize(Document.new())
        self.assertEqual(len(data), HEADER_SIZE)
        doc = load(data)
        self.assertEqual(len(doc), 0)
        self.assertEqual(serialize(doc), data)

    def test_roundtrip_after_mutation(self):
        doc = Document.new()
        add_entry(doc, "str", "TITLE", "My Game")
        add_entry(doc, "str", "TITLE_ID", "ABCD12345")
        add_entry(doc, "int", "SYSTEM_VER", "0x05050000")
        data = serialize(doc)
        self.assertEqual(serialize(load(data)), data)

    def test_offsets_recomputed_on_serialize(self):
        doc = load(_sample_bytes())
        doc.header.key_table_offset = 999
        doc.header.value_table_offset = 1
        self.assertEqual(serialize(doc), _sample_bytes())

    def test_load_at_offset(self):
        data = b"\xaa" * 64 + _sample_bytes()
        doc = load(data, 64)
        self.assertEqual(doc.keys(), ["CATEGORY", "PARENTAL_LEVEL"])

    def test_special_string_reads_as_string(self):
        data = bytearray(_sample_bytes())
        struct.pack_into("<H", data, HEADER_SIZE + 2, KIND_SPECIAL_STRING)
        doc = load(bytes(data))
        self.assertEqual(doc.value("CATEGORY"), "gd")
        self.assertEqual(serialize(doc), bytes(data))

    def test_bad_magic(self):
        data = b"\x00PSX" + _sample_bytes()[4:]
        with self.assertRaises(BadMagicError):
            load(data)

    def test_truncated_inputs(self):
        data = _sample_bytes()
        for cut in (0, 10, HEADER_SIZE + 8, HEADER_SIZE + 32 + 4, len(data) - 1):
            with self.subTest(cut=cut):
                with self.assertRaises(TruncatedInputError):
                    load(data[:cut])

    def test_key_table_after_value_table(self):
        data = bytearray(_sample_bytes())
        struct.pack_into("<II", data, 8, 80, 60)
        with self.assertRaises(ParseError):
            load(bytes(data))

    def test_length_exceeding_capacity_rejected(self):
        data = bytearray(_sample_bytes())
        struct.pack_into("<I", data, HEADER_SIZE + 4, 9)
        with self.assertRaises(ParseError):
            load(bytes(data))

    def test_key_offset_outside_table(self):
        data = bytearray(_sample_bytes())
        struct.pack_into("<H", data, HEADER_SIZE + 16, 200)
        with self.assertRaises(ParseError):
            load(bytes(data))

    def test_save_and_read_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "param.sfo"
            save(load(_sample_bytes()), path)
            self.assertEqual(path.read_bytes(), _sample_bytes())
            loaded = read_file(path)
            self.assertFalse(loaded.in_container)
            self.assertEqual(loaded.document.value("CATEGORY"), "gd")
            leftovers = [p for p in os.listdir(tmp) if p != "param.sfo"]
            self.assertEqual(leftovers, [])


    @unittest.skipIf(os.name == "nt", "POSIX permission bits")
    def test_save_keeps_existing_mode(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "param.sfo"
            path.write_bytes(_sample_bytes())
            for mode in (0o644, 0o640):
                with self.subTest(mode=oct(mode)):
                    os.chmod(path, mode)
                    save(load(path.read_bytes()), path)
                    self.assertEqual(stat.S_IMODE(path.stat().st_mode), mode)

    @unittest.skipIf(os.name == "nt", "POSIX permission bits")
    def test_save_new_file_honors_umask(self):
        old = os.umask(0o027)
        try:
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / "new.sfo"
                save(Document.new(), path)
                self.assertEqual(stat.S_IMODE(path.stat().st_mode), 0o640)
        finally:
            os.umask(old)


if __name__ == "__main__":
    unittest.main()
