"""
eosd-ecl: Opcode tables and argument decoders for both ECL dialects.

Each table maps opcode → (name, "field:kind field:kind ..."). At import time
every entry becomes an immutable namedtuple class deriving from its dialect
base (SubInstruction or MainInstruction), with two extra class attributes:

  opcode    the table key
  formats   field kinds in read order

Classes are reachable both by opcode (SUB_INSTRUCTIONS[93]) and by name
(SubInstruction.SetSpellcard). Opcodes missing from a table have no known
argument layout and are rejected with UnknownOpcodeError.

Sub opcode gaps (never seen, layout unknown):
  44, 53-55, 58, 60, 62, 64, 72-73, 80, 89, 110
"""

import struct
from collections import namedtuple

from .errors import UnknownOpcodeError
from .fields import FIELD_CODES, FIELD_SIZES, read_field, read_struct


# =============================================================================
# MAIN DIALECT (enemy spawn schedule)
# =============================================================================

_SPAWN = "x:f32 y:f32 z:f32 life:i16 bonus_dropped:i16 die_score:u32"

MAIN_OPCODES = {
    0:  ("SpawnEnemy",               _SPAWN),
    2:  ("SpawnEnemyMirrored",       _SPAWN),
    4:  ("SpawnEnemyRandom",         _SPAWN),
    6:  ("SpawnEnemyMirroredRandom", _SPAWN),
    8:  ("CallMessage",              ""),
    9:  ("WaitMessage",              ""),
    10: ("ResumeEcl",                "x:f32 y:f32"),
    12: ("WaitForBossDeath",         ""),
}


# =============================================================================
# SUB DIALECT (per-enemy behaviour)
# =============================================================================

_CALL_IF = "sub:i32 param1:i32 param2:f32 a:i32 b:i32"
_BULLETS = ("anim:i16 sprite_index_offset:i16 bullets_per_shot:i32 "
            "number_of_shots:i32 speed:f32 speed2:f32 launch_angle:f32 "
            "angle:f32 flags:u32")
_LASER = ("laser_type:i16 sprite_idx_offset:i16 angle:f32 speed:f32 "
          "start_offset:f32 end_offset:f32 max_length:f32 width:f32 "
          "start_duration:i32 duration:i32 end_duration:i32 "
          "grazing_delay:i32 grazing_extra_duration:i32 UNK1:i32")

SUB_OPCODES = {
    # Control flow and variables
    0:   ("Noop",                         ""),
    1:   ("Destroy",                      "unused:u32"),
    2:   ("RelativeJump",                 "frame:i32 ip:i32"),
    3:   ("RelativeJumpEx",               "frame:i32 ip:i32 variable_id:i32"),
    4:   ("SetInt",                       "var:i32 value:i32"),
    5:   ("SetFloat",                     "var:i32 value:f32"),
    6:   ("SetRandomInt",                 "var:i32 max:i32"),
    7:   ("SetRandomIntMin",              "var:i32 max:i32 min:i32"),
    8:   ("SetRandomFloat",               "var:i32 max:f32"),
    9:   ("SetRandomFloatMin",            "var:i32 amplitude:f32 min:f32"),
    10:  ("StoreX",                       "var:i32"),
    11:  ("StoreY",                       "var:i32"),
    12:  ("StoreZ",                       "var:i32"),
    13:  ("AddInt",                       "var:i32 a:i32 b:i32"),
    14:  ("SubstractInt",                 "var:i32 a:i32 b:i32"),
    15:  ("MultiplyInt",                  "var:i32 a:i32 b:i32"),
    16:  ("DivideInt",                    "var:i32 a:i32 b:i32"),
    17:  ("ModuloInt",                    "var:i32 a:i32 b:i32"),
    18:  ("Increment",                    "var:i32"),
    19:  ("Decrement",                    "var:i32"),
    20:  ("AddFloat",                     "var:i32 a:f32 b:f32"),
    21:  ("SubstractFloat",               "var:i32 a:f32 b:f32"),
    22:  ("MultiplyFloat",                "var:i32 a:f32 b:f32"),
    23:  ("DivideFloat",                  "var:i32 a:f32 b:f32"),
    24:  ("ModuloFloat",                  "var:i32 a:f32 b:f32"),
    25:  ("GetDirection",                 "var:i32 x1:f32 y1:f32 x2:f32 y2:f32"),
    26:  ("FloatToUnitCircle",            "var:i32"),
    27:  ("CompareInts",                  "a:i32 b:i32"),
    28:  ("CompareFloats",                "a:f32 b:f32"),
    29:  ("RelativeJumpIfLowerThan",      "frame:i32 ip:i32"),
    30:  ("RelativeJumpIfLowerOrEqual",   "frame:i32 ip:i32"),
    31:  ("RelativeJumpIfEqual",          "frame:i32 ip:i32"),
    32:  ("RelativeJumpIfGreaterThan",    "frame:i32 ip:i32"),
    33:  ("RelativeJumpIfGreaterOrEqual", "frame:i32 ip:i32"),
    34:  ("RelativeJumpIfNotEqual",       "frame:i32 ip:i32"),
    35:  ("Call",                         "sub:i32 param1:i32 param2:f32"),
    36:  ("Return",                       ""),
    37:  ("CallIfSuperior",               _CALL_IF),
    38:  ("CallIfSuperiorOrEqual",        _CALL_IF),
    39:  ("CallIfEqual",                  _CALL_IF),
    40:  ("CallIfInferior",               _CALL_IF),
    41:  ("CallIfInferiorOrEqual",        _CALL_IF),
    42:  ("CallIfNotEqual",               _CALL_IF),

    # Movement
    43:  ("SetPosition",                  "x:f32 y:f32 z:f32"),
    45:  ("SetAngleAndSpeed",             "angle:f32 speed:f32"),
    46:  ("SetRotationSpeed",             "speed:f32"),
    47:  ("SetSpeed",                     "speed:f32"),
    48:  ("SetAcceleration",              "acceleration:f32"),
    49:  ("SetRandomAngle",               "min:f32 max:f32"),
    50:  ("SetRandomAngleEx",             "min:f32 max:f32"),
    51:  ("TargetPlayer",                 "angle:f32 speed:f32"),
    52:  ("MoveInDecel",                  "duration:i32 angle:f32 speed:f32"),
    56:  ("MoveToLinear",                 "duration:i32 x:f32 y:f32 z:f32"),
    57:  ("MoveToDecel",                  "duration:i32 x:f32 y:f32 z:f32"),
    59:  ("MoveToAccel",                  "duration:i32 x:f32 y:f32 z:f32"),
    61:  ("StopIn",                       "duration:i32"),
    63:  ("StopInAccel",                  "duration:i32"),
    65:  ("SetScreenBox",                 "xmin:f32 ymin:f32 xmax:f32 ymax:f32"),
    66:  ("ClearScreenBox",               ""),

    # Bullets and lasers
    67:  ("SetBulletAttributes1",         _BULLETS),
    68:  ("SetBulletAttributes2",         _BULLETS),
    69:  ("SetBulletAttributes3",         _BULLETS),
    70:  ("SetBulletAttributes4",         _BULLETS),
    71:  ("SetBulletAttributes5",         _BULLETS),
    74:  ("SetBulletAttributes6",         _BULLETS),
    75:  ("SetBulletAttributes7",         _BULLETS),
    76:  ("SetBulletInterval",            "interval:i32"),
    77:  ("SetBulletIntervalEx",          "interval:i32"),
    78:  ("DelayAttack",                  ""),
    79:  ("NoDelayAttack",                ""),
    81:  ("SetBulletLaunchOffset",        "x:f32 y:f32 z:f32"),
    82:  ("SetExtendedBulletAttributes",
          "a:i32 b:i32 c:i32 d:i32 e:f32 f:f32 g:f32 h:f32"),
    83:  ("ChangeBulletsInStarBonus",     ""),
    84:  ("SetBulletSound",               "sound:i32"),       # stage 4 onward
    85:  ("NewLaser",                     _LASER),
    86:  ("NewLaserTowardsPlayer",        _LASER),
    87:  ("SetUpcomingLaserId",           "id:u32"),
    88:  ("AlterLaserAngle",              "id:u32 delta:f32"),
    90:  ("RepositionLaser",              "id:u32 ox:f32 oy:f32 oz:f32"),
    91:  ("LaserSetCompare",              "id:u32"),
    92:  ("CancelLaser",                  "id:u32"),

    # Spellcards, spawning, animation
    93:  ("SetSpellcard",                 "face:i16 number:i16 name:str"),
    94:  ("EndSpellcard",                 ""),
    95:  ("SpawnEnemy",
          "sub:i32 x:f32 y:f32 z:f32 life:i16 bonus_dropped:i16 die_score:i32"),
    96:  ("KillAllEnemies",               ""),
    97:  ("SetAnim",                      "script:i32"),
    98:  ("SetMultipleAnims",
          "default:i16 end_left:i16 end_right:i16 left:i16 right:i16 unused:i16"),
    99:  ("SetAuxAnm",                    "number:i32 script:i32"),
    100: ("SetDeathAnim",                 "sprite_index:i32"),
    101: ("SetBossMode",                  "value:i32"),
    102: ("CreateSquares",                "UNK1:i32 UNK2:f32 UNK3:f32 UNK4:f32 UNK5:f32"),

    # Enemy state and callbacks
    103: ("SetHitbox",                    "width:f32 height:f32 depth:f32"),
    104: ("SetCollidable",                "collidable:i32"),
    105: ("SetDamageable",                "damageable:i32"),
    106: ("PlaySound",                    "index:i32"),
    107: ("SetDeathFlags",                "death_flags:u32"),
    108: ("SetDeathCallback",             "sub:i32"),
    109: ("MemoryWriteInt",               "value:i32 index:i32"),
    111: ("SetLife",                      "life:i32"),
    112: ("SetElapsedTime",               "frame:i32"),
    113: ("SetLowLifeTrigger",            "trigger:i32"),
    114: ("SetLowLifeCallback",           "sub:i32"),
    115: ("SetTimeout",                   "timeout:i32"),
    116: ("SetTimeoutCallback",           "sub:i32"),
    117: ("SetTouchable",                 "touchable:i32"),
    118: ("DropParticles",                "anim:i32 number:u32 r:u8 g:u8 b:u8 a:u8"),
    119: ("DropBonus",                    "number:i32"),
    120: ("SetAutomaticOrientation",      "automatic:i32"),
    121: ("CallSpecialFunction",          "function:i32 argument:i32"),
    122: ("SetSpecialFunctionCallback",   "function:i32"),
    123: ("SkipFrames",                   "frames:i32"),
    124: ("DropSpecificBonus",            "type_:i32"),
    125: ("UNK_ins125",                   ""),                # stage 3
    126: ("SetRemainingLives",            "lives:i32"),
    127: ("UNK_ins127",                   "UNK1:i32"),        # stage 4
    128: ("Interrupt",                    "event:i32"),
    129: ("InterruptAux",                 "number:i32 event:i32"),
    130: ("UNK_ins130",                   "UNK1:i32"),        # stage 4
    131: ("SetDifficultyCoeffs",
          "speed_a:f32 speed_b:f32 nb_a:i32 nb_b:i32 shots_a:i32 shots_b:i32"),
    132: ("SetInvisible",                 "invisible:i32"),
    133: ("CopyCallbacks",                ""),
    134: ("UNK_ins134",                   ""),                # stage 4
    135: ("EnableSpellcardBonus",         "UNK1:i32"),
}


# =============================================================================
# INSTRUCTION CLASSES
# =============================================================================

class Instruction:
    """
    Mixin placed ahead of the namedtuple in every instruction class.

    Equality includes the class, so SetSpeed(1.0) != SetAcceleration(1.0)
    even though both are 1-tuples.
    """
    __slots__ = ()
    opcode = None
    formats = ()
    layout = None      # struct.Struct for all-numeric layouts, else None

    def __eq__(self, other):
        return type(self) is type(other) and tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((type(self).__name__, self.opcode, tuple(self)))


class SubInstruction(Instruction):
    """Base of every Sub dialect instruction."""
    __slots__ = ()


class MainInstruction(Instruction):
    """Base of every Main dialect instruction."""
    __slots__ = ()


def _declare(base, opcodes: dict) -> dict:
    """Build one namedtuple class per table entry, keyed by opcode."""
    classes = {}
    for opcode, (name, spec) in opcodes.items():
        fields = [f.split(':') for f in spec.split()]
        names = [n for n, _ in fields]
        formats = tuple(kind for _, kind in fields)
        if 'str' in formats:
            layout = None
        else:
            layout = struct.Struct('<' + ''.join(FIELD_CODES[k] for k in formats))
        cls = type(name, (base, namedtuple(name, names)), {
            '__slots__': (),
            '__module__': __name__,
            '__qualname__': f"{base.__name__}.{name}",
            'opcode': opcode,
            'formats': formats,
            'layout': layout,
        })
        setattr(base, name, cls)
        classes[opcode] = cls
    return classes


SUB_INSTRUCTIONS = _declare(SubInstruction, SUB_OPCODES)
MAIN_INSTRUCTIONS = _declare(MainInstruction, MAIN_OPCODES)


# =============================================================================
# ARGUMENT DECODERS
# =============================================================================

def _decode_args(classes: dict, data, pos: int, opcode: int, dialect: str):
    cls = classes.get(opcode)
    if cls is None:
        raise UnknownOpcodeError(opcode, dialect)

    if cls.layout is not None:
        values, pos = read_struct(cls.layout, data, pos)
    else:
        values = []
        for kind in cls.formats:
            value, pos = read_field(data, pos, kind)
            values.append(value)
    return cls(*values), pos


def decode_sub_args(data, pos: int, opcode: int):
    """
    Decode the arguments of a Sub instruction starting at pos.

    Returns: (instruction, new_pos)

    Raises:
        UnknownOpcodeError: opcode has no entry in SUB_OPCODES
        TruncatedError: arguments run past the end of data
    """
    return _decode_args(SUB_INSTRUCTIONS, data, pos, opcode, "sub")


def decode_main_args(data, pos: int, opcode: int):
    """Same as decode_sub_args, for the Main dialect."""
    return _decode_args(MAIN_INSTRUCTIONS, data, pos, opcode, "main")


# =============================================================================
# FORMATTING
# =============================================================================

def args_size(cls) -> int:
    """Encoded size in bytes of an instruction's arguments."""
    return sum(FIELD_SIZES[kind] for kind in cls.formats)


def signature(cls) -> str:
    """Opcode table entry as 'Name(field: kind, ...)'."""
    params = ', '.join(f"{n}: {k}" for n, k in zip(cls._fields, cls.formats))
    return f"{cls.__name__}({params})"


def format_value(value) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, str):
        return repr(value)
    return str(value)


def format_instruction(instr) -> str:
    """Instruction as 'Name(field=value, ...)' with compact floats."""
    args = ', '.join(f"{n}={format_value(v)}" for n, v in zip(instr._fields, instr))
    return f"{type(instr).__name__}({args})"
