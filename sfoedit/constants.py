import struct


# Magic and version
PSF_MAGIC = b"\x00PSF"     # 4 bytes: "\0PSF"
DEFAULT_VERSION = 0x0101   # PS4 param.sfo 1.1

# Header: magic[4], version u32, key_table_offset u32, value_table_offset u32, entries_count u32
HEADER_STRUCT = struct.Struct("<4sIIII")
HEADER_SIZE = HEADER_STRUCT.size  # 0x14

# Directory record: key_offset u16, kind u16, length u32, max_length u32, value_offset u32
ENTRY_STRUCT = struct.Struct("<HHIII")
ENTRY_SIZE = ENTRY_STRUCT.size  # 0x10

# Value kinds
KIND_STRING = 0x0204
KIND_SPECIAL_STRING = 0x0400
KIND_SPECIAL_STRING_ALT = 0x0004  # psdevwiki's utf8-S spelling
KIND_INTEGER = 0x0404

STRING_KINDS = frozenset({KIND_STRING, KIND_SPECIAL_STRING, KIND_SPECIAL_STRING_ALT})

# Type names accepted by the command surface
TYPE_NAMES = {
    "str": KIND_STRING,
    "int": KIND_INTEGER,
}

ALIGNMENT = 4
INTEGER_SIZE = 4
MAX_UINT32 = 0xFFFFFFFF
MAX_KEY_TABLE_SIZE = 0xFFFF  # key offsets are u16

# PKG container (all fields big-endian)
PKG_MAGIC = b"\x7fCNT"
PKG_ENTRY_COUNT_OFFSET = 0x00C
PKG_TABLE_OFFSET_OFFSET = 0x018
# Table record: id, filename_offset, flags1, flags2, offset, size, padding
PKG_TABLE_ENTRY_STRUCT = struct.Struct(">IIIIIIQ")
PKG_PARAM_SFO_ID = 0x1000
