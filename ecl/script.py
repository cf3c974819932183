"""
eosd-ecl: ECL enemy script decoder.

An ECL file holds two instruction dialects: per-enemy "sub" scripts and a
"main" schedule that spawns enemies running those subs.

File layout (all little-endian):
  uint16      sub_count
  uint16      main_count        always 0 (one main block)
  uint32[3]   main offsets      0 = unused slot, scanning stops at the first 0
  uint32[N]   sub offsets       N = sub_count
  ...         record streams

Sub record (12-byte header + args):
  int32  time        frame the instruction runs at
  uint16 opcode
  uint16 size        whole record, header included
  uint16 rank_mask   difficulties the instruction runs on (Rank)
  uint16 param_mask  kept verbatim
  Terminated by time == -1 and opcode == 0xFFFF.

Main record (8-byte header + args):
  uint16 time
  uint16 sub         index into the sub list
  uint16 opcode
  uint16 size
  Terminated by time == 0xFFFF and sub == 4.
"""

import struct
from typing import NamedTuple

from .constants import (
    MAIN_OFFSET_SLOTS, MAIN_SENTINEL_SUB, MAIN_SENTINEL_TIME,
    SUB_SENTINEL_OPCODE, SUB_SENTINEL_TIME, Rank,
)
from .errors import SizeMismatchError, UnsupportedFeatureError
from .fields import read_struct
from .opcodes import (
    MainInstruction, SubInstruction, decode_main_args, decode_sub_args,
)


_HEADER = struct.Struct('<HH')
_MAIN_OFFSETS = struct.Struct(f'<{MAIN_OFFSET_SLOTS}I')
_SUB_CALL_HEAD = struct.Struct('<iH')      # time, opcode
_SUB_CALL_TAIL = struct.Struct('<HHH')     # size, rank_mask, param_mask
_MAIN_CALL_HEAD = struct.Struct('<HH')     # time, sub
_MAIN_CALL_TAIL = struct.Struct('<HH')     # opcode, size


# =============================================================================
# DATA MODEL
# =============================================================================

class CallSub(NamedTuple):
    """One sub instruction with its scheduling data."""
    time: int
    rank_mask: Rank
    param_mask: int
    instruction: SubInstruction

    @classmethod
    def new(cls, time: int, rank_mask: Rank, instruction) -> "CallSub":
        return cls(time, rank_mask, 0, instruction)


class Sub(NamedTuple):
    """Behaviour script of one enemy, in execution order."""
    instructions: tuple


class CallMain(NamedTuple):
    time: int
    sub: int
    instruction: MainInstruction


class Main(NamedTuple):
    """Enemy spawn schedule."""
    instructions: tuple


class Script(NamedTuple):
    """A whole decoded ECL file."""
    subs: tuple
    mains: tuple

    @classmethod
    def from_bytes(cls, data) -> "Script":
        return parse_ecl(data)


# =============================================================================
# HEADER
# =============================================================================

def read_header(data) -> tuple:
    """
    Resolve the main and sub offset tables.

    Returns: (main_offsets, sub_offsets), both tuples of absolute offsets

    Raises:
        UnsupportedFeatureError: main_count is not 0
        TruncatedError: header or offset tables run past the end of data
    """
    (sub_count, main_count), pos = read_struct(_HEADER, data, 0)
    if main_count != 0:
        raise UnsupportedFeatureError(main_count)

    main_offsets, pos = read_struct(_MAIN_OFFSETS, data, pos)
    sub_offsets, pos = read_struct(struct.Struct(f'<{sub_count}I'), data, pos)
    return main_offsets, sub_offsets


# =============================================================================
# SUB DECODER
# =============================================================================

def parse_sub_instruction(data, start: int) -> tuple:
    """
    Decode one sub record at start.

    Returns: (CallSub, end_pos), or (None, start) on the terminator record
    """
    (time, opcode), pos = read_struct(_SUB_CALL_HEAD, data, start)
    if time == SUB_SENTINEL_TIME and opcode == SUB_SENTINEL_OPCODE:
        return None, start

    (size, rank_mask, param_mask), pos = read_struct(_SUB_CALL_TAIL, data, pos)
    rank = Rank.from_bits(rank_mask)
    instr, pos = decode_sub_args(data, pos, opcode)

    if pos - start != size:
        raise SizeMismatchError(size, pos - start, start)
    return CallSub(time, rank, param_mask, instr), pos


def parse_sub(data, offset: int) -> Sub:
    """Decode the sub whose first record is at offset."""
    instructions = []
    pos = offset
    while True:
        call, pos = parse_sub_instruction(data, pos)
        if call is None:
            break
        instructions.append(call)
    return Sub(tuple(instructions))


# =============================================================================
# MAIN DECODER
# =============================================================================

def parse_main_instruction(data, start: int) -> tuple:
    """Same as parse_sub_instruction, for main records."""
    (time, sub), pos = read_struct(_MAIN_CALL_HEAD, data, start)
    if time == MAIN_SENTINEL_TIME and sub == MAIN_SENTINEL_SUB:
        return None, start

    (opcode, size), pos = read_struct(_MAIN_CALL_TAIL, data, pos)
    instr, pos = decode_main_args(data, pos, opcode)

    if pos - start != size:
        raise SizeMismatchError(size, pos - start, start)
    return CallMain(time, sub, instr), pos


def parse_main(data, offset: int) -> Main:
    instructions = []
    pos = offset
    while True:
        call, pos = parse_main_instruction(data, pos)
        if call is None:
            break
        instructions.append(call)
    return Main(tuple(instructions))


# =============================================================================
# FILE PARSER
# =============================================================================

def parse_ecl(data) -> Script:
    """
    Decode a complete ECL file.

    Args:
        data: Raw file contents (bytes, bytearray or memoryview)

    Returns:
        Script with one Sub per sub offset and one Main per leading
        non-zero main offset

    Raises:
        EclError: first malformed structure found; nothing partial is returned
    """
    data = bytes(data)
    main_offsets, sub_offsets = read_header(data)

    subs = tuple(parse_sub(data, offset) for offset in sub_offsets)

    mains = []
    for offset in main_offsets:
        if offset == 0:
            break
        mains.append(parse_main(data, offset))

    return Script(subs, tuple(mains))
