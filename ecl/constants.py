"""
eosd-ecl: File layout constants and the difficulty rank mask.

All offsets are relative to the start of the ECL buffer, all values
little-endian.
"""

from enum import IntFlag

from .errors import InvalidRankBitsError, InvalidRankNameError


# =============================================================================
# FILE HEADER
# =============================================================================

HEADER_SIZE = 4            # uint16 sub_count, uint16 main_count
MAIN_OFFSET_SLOTS = 3      # uint32[3], only the leading non-zero ones are used
SUB_OFFSETS_START = HEADER_SIZE + MAIN_OFFSET_SLOTS * 4


# =============================================================================
# INSTRUCTION RECORDS
# =============================================================================

# Sub record: int32 time, uint16 opcode, uint16 size, uint16 rank, uint16 param
SUB_RECORD_HEADER = 12
SUB_SENTINEL_TIME = -1
SUB_SENTINEL_OPCODE = 0xFFFF

# Main record: uint16 time, uint16 sub, uint16 opcode, uint16 size
MAIN_RECORD_HEADER = 8
MAIN_SENTINEL_TIME = 0xFFFF
MAIN_SENTINEL_SUB = 4

# Fixed-width zero-padded Shift-JIS field (spellcard names)
TEXT_FIELD_SIZE = 34
TEXT_ENCODING = "cp932"


# =============================================================================
# DIFFICULTY RANK (bitfield)
# =============================================================================

RANK_VALID_BITS = 0xFF00   # top byte; only the low nibble of it is named
RANK_NAMED_BITS = 0x0F00


class Rank(IntFlag):
    """Difficulty level(s) an instruction is executed at."""

    EASY = 0x100
    NORMAL = 0x200
    HARD = 0x400
    LUNATIC = 0x800
    ALL = 0xFF00

    @classmethod
    def from_bits(cls, raw: int) -> "Rank":
        """Rebuild a Rank from a raw uint16, rejecting bits outside 0xFF00."""
        if raw & ~RANK_VALID_BITS:
            raise InvalidRankBitsError(raw)
        return cls(raw)

    @classmethod
    def from_str(cls, name: str) -> "Rank":
        try:
            return RANK_NAMES[name]
        except KeyError:
            raise InvalidRankNameError(name) from None


RANK_NAMES = {
    "easy": Rank.EASY,
    "normal": Rank.NORMAL,
    "hard": Rank.HARD,
    "lunatic": Rank.LUNATIC,
}


def rank_str(rank: int) -> str:
    """Convert a rank mask to a human-readable string."""
    if int(rank) & RANK_VALID_BITS == RANK_VALID_BITS:
        return "ALL"
    parts = [name.upper() for name, bit in RANK_NAMES.items() if rank & bit]
    extra = int(rank) & RANK_VALID_BITS & ~RANK_NAMED_BITS
    if extra:
        parts.append(f"0x{extra:04X}")
    return '|'.join(parts) if parts else "-"
