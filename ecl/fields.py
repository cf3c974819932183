"""
eosd-ecl: Primitive field readers.

Every reader takes (data, pos) and returns (value, new_pos). Reads are
bounds-checked up front so a short buffer raises TruncatedError instead of
struct.error or IndexError.

Field kinds:
  u8 / u16 / u32   unsigned little-endian integers
  i16 / i32        signed little-endian integers
  f32              IEEE 754 single
  str              34-byte zero-padded Shift-JIS text
"""

import struct

from .constants import TEXT_FIELD_SIZE, TEXT_ENCODING
from .errors import TruncatedError


FIELD_CODES = {
    'u8':  'B',
    'u16': 'H',
    'u32': 'I',
    'i16': 'h',
    'i32': 'i',
    'f32': 'f',
}

FIELD_STRUCTS = {kind: struct.Struct('<' + code) for kind, code in FIELD_CODES.items()}

FIELD_SIZES = {kind: s.size for kind, s in FIELD_STRUCTS.items()}
FIELD_SIZES['str'] = TEXT_FIELD_SIZE


def check_available(data, pos: int, size: int):
    """Raise TruncatedError unless data[pos:pos + size] lies inside data."""
    if pos < 0 or pos + size > len(data):
        raise TruncatedError(pos, size, len(data) - pos)


def read_struct(fmt: struct.Struct, data, pos: int) -> tuple:
    """Unpack a precompiled struct at pos. Returns (values, new_pos)."""
    check_available(data, pos, fmt.size)
    return fmt.unpack_from(data, pos), pos + fmt.size


def read_text(data, pos: int) -> tuple:
    """
    Read a fixed-width text field.

    Exactly TEXT_FIELD_SIZE bytes are consumed whatever the string length;
    the text ends at the first zero byte. Undecodable sequences become
    U+FFFD rather than failing.

    Returns: (text, new_pos)
    """
    check_available(data, pos, TEXT_FIELD_SIZE)
    chunk = bytes(data[pos:pos + TEXT_FIELD_SIZE])
    term = chunk.find(0)
    if term >= 0:
        chunk = chunk[:term]
    return chunk.decode(TEXT_ENCODING, errors='replace'), pos + TEXT_FIELD_SIZE


def read_field(data, pos: int, kind: str) -> tuple:
    """Read one field of the given kind. Returns (value, new_pos)."""
    if kind == 'str':
        return read_text(data, pos)
    (value,), pos = read_struct(FIELD_STRUCTS[kind], data, pos)
    return value, pos
