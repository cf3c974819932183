"""
eosd-ecl: Decode errors.

Every malformed-input condition raises a subclass of EclError, which is a
ValueError so callers that only catch ValueError keep working.
"""


class EclError(ValueError):
    """Base class for all ECL decode errors."""


class TruncatedError(EclError):
    """A read needs more bytes than the buffer holds."""

    def __init__(self, offset: int, needed: int, available: int):
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f"ECL: need {needed} bytes at offset 0x{offset:X}, "
            f"only {max(available, 0)} available")


class UnsupportedFeatureError(EclError):
    """Header declares more than the single supported Main block."""

    def __init__(self, main_count: int):
        self.main_count = main_count
        super().__init__(f"ECL: main_count must be 0, got {main_count}")


class UnknownOpcodeError(EclError):
    def __init__(self, opcode: int, dialect: str = "sub"):
        self.opcode = opcode
        self.dialect = dialect
        super().__init__(f"ECL: unknown {dialect} opcode {opcode}")


class SizeMismatchError(EclError):
    """Declared record size differs from the bytes actually consumed."""

    def __init__(self, declared: int, actual: int, offset: int = 0):
        self.declared = declared
        self.actual = actual
        self.offset = offset
        super().__init__(
            f"ECL: record at 0x{offset:X} declares {declared} bytes, "
            f"decoded {actual}")


class InvalidRankBitsError(EclError):
    def __init__(self, raw: int):
        self.raw = raw
        super().__init__(f"ECL: invalid rank mask 0x{raw:04X}")


class InvalidRankNameError(EclError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown rank {name}")
