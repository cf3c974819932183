"""eosd-ecl shared library."""
from .constants import Rank, rank_str  # noqa: F401
from .errors import (  # noqa: F401
    EclError, TruncatedError, UnsupportedFeatureError, UnknownOpcodeError,
    SizeMismatchError, InvalidRankBitsError, InvalidRankNameError,
)
from .fields import read_text  # noqa: F401
from .opcodes import (  # noqa: F401
    SUB_OPCODES, MAIN_OPCODES, SUB_INSTRUCTIONS, MAIN_INSTRUCTIONS,
    SubInstruction, MainInstruction, format_instruction,
)
from .script import (  # noqa: F401
    Script, Sub, CallSub, Main, CallMain, parse_ecl, read_header,
)
