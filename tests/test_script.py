import os
import random
import struct

import pytest

from ecl.constants import Rank
from ecl.errors import (
    EclError, InvalidRankBitsError, SizeMismatchError, TruncatedError,
    UnknownOpcodeError, UnsupportedFeatureError,
)
from ecl.opcodes import MainInstruction, SubInstruction
from ecl.script import CallSub, Script, parse_ecl, parse_main, parse_sub, read_header

from ecl_builders import (
    build_ecl, main_end, main_record, sample_ecl, spawn_args, sub_end, sub_record,
)


REFERENCE_FILE = os.environ.get(
    'ECL_REFERENCE_FILE',
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                 'EoSD', 'ST', 'ecldata1.ecl'))


# =============================================================================
# WELL-FORMED FILES
# =============================================================================

def test_sample_file():
    script = parse_ecl(sample_ecl())
    assert len(script.subs) == 2
    assert len(script.mains) == 1

    sub0 = script.subs[0].instructions
    assert [c.time for c in sub0] == [0, 10, 60]
    assert sub0[0].instruction == SubInstruction.SetSpeed(1.5)
    assert sub0[0].rank_mask is Rank.ALL
    assert sub0[1].instruction == SubInstruction.SetSpellcard(1, 2, "Sign")
    assert sub0[1].rank_mask == Rank.LUNATIC
    assert sub0[1].param_mask == 0x1234
    assert type(sub0[2].instruction) is SubInstruction.Destroy

    assert script.subs[1].instructions == (CallSub.new(0, Rank.ALL, SubInstruction.Noop()),)

    main = script.mains[0].instructions
    assert [(c.time, c.sub) for c in main] == [(30, 0), (90, 1), (120, 0)]
    assert main[0].instruction.x == 32.0
    assert main[0].instruction.y == -16.0
    assert type(main[1].instruction) is MainInstruction.SpawnEnemyRandom
    assert main[2].instruction == MainInstruction.WaitForBossDeath()


def test_from_bytes_accepts_buffer_types():
    data = sample_ecl()
    expected = parse_ecl(data)
    assert Script.from_bytes(data) == expected
    assert Script.from_bytes(bytearray(data)) == expected
    assert Script.from_bytes(memoryview(data)) == expected


def test_script_is_immutable():
    script = parse_ecl(sample_ecl())
    assert isinstance(script.subs, tuple)
    assert isinstance(script.subs[0].instructions, tuple)
    with pytest.raises(AttributeError):
        script.subs = ()


def test_call_sub_new_clears_param_mask():
    call = CallSub.new(5, Rank.HARD, SubInstruction.Return())
    assert call == (5, Rank.HARD, 0, SubInstruction.Return())


@pytest.mark.parametrize("n_subs", [0, 1, 7])
def test_sub_count_matches_header(n_subs):
    subs = [sub_record(18, struct.pack('<i', i)) + sub_end() for i in range(n_subs)]
    script = parse_ecl(build_ecl(subs, [main_end()]))
    assert len(script.subs) == n_subs
    assert [s.instructions[0].instruction.var for s in script.subs] == list(range(n_subs))


def test_read_header():
    data = sample_ecl()
    main_offsets, sub_offsets = read_header(data)
    assert main_offsets == (24, 0, 0)
    assert len(sub_offsets) == 2
    assert sub_offsets[0] > main_offsets[0]


# =============================================================================
# MAIN OFFSET SLOTS
# =============================================================================

def test_mains_stop_at_first_zero_offset():
    mains = [main_record(9) + main_end(), main_record(8) + main_end()]
    data = build_ecl([sub_end()], mains, main_slots=[0, None, 1])
    script = parse_ecl(data)
    assert len(script.mains) == 1
    assert script.mains[0].instructions[0].instruction == MainInstruction.WaitMessage()


def test_all_main_slots_used():
    mains = [main_record(8) + main_end()] * 3
    script = parse_ecl(build_ecl([], mains))
    assert len(script.mains) == 3


def test_no_main():
    script = parse_ecl(build_ecl([sub_end()], [], main_slots=[None, None, None]))
    assert script.mains == ()
    assert script.subs[0].instructions == ()


# =============================================================================
# TERMINATORS
# =============================================================================

def test_sub_stops_at_terminator_without_reading_further():
    stream = sub_record(0) + sub_end() + b'\xAB' * 5
    sub = parse_sub(stream, 0)
    assert len(sub.instructions) == 1


def test_sub_terminator_needs_both_fields():
    stream = sub_record(0, time=-1) + sub_record(36, time=5) + sub_end()
    sub = parse_sub(stream, 0)
    assert [c.time for c in sub.instructions] == [-1, 5]


def test_sub_terminator_only_needs_six_bytes():
    stream = sub_record(0) + struct.pack('<iH', -1, 0xFFFF)
    assert len(parse_sub(stream, 0).instructions) == 1


def test_main_stops_at_terminator():
    stream = main_record(8) + main_end() + main_record(1)
    main = parse_main(stream, 0)
    assert len(main.instructions) == 1


def test_main_terminator_needs_sub_4():
    stream = main_record(9, time=0xFFFF, sub=3) + main_end()
    main = parse_main(stream, 0)
    assert (main.instructions[0].time, main.instructions[0].sub) == (0xFFFF, 3)


# =============================================================================
# MALFORMED FILES
# =============================================================================

def test_sub_size_mismatch():
    data = build_ecl([sub_record(0, size=13) + sub_end()], [main_end()])
    with pytest.raises(SizeMismatchError) as exc:
        parse_ecl(data)
    assert (exc.value.declared, exc.value.actual) == (13, 12)


def test_main_size_mismatch():
    stream = main_record(0, spawn_args(), size=8) + main_end()
    with pytest.raises(SizeMismatchError) as exc:
        parse_ecl(build_ecl([], [stream]))
    assert (exc.value.declared, exc.value.actual) == (8, 28)


def test_invalid_rank_bits():
    data = build_ecl([sub_record(0, rank=0x0001) + sub_end()], [main_end()])
    with pytest.raises(InvalidRankBitsError) as exc:
        parse_ecl(data)
    assert exc.value.raw == 0x0001


def test_unknown_sub_opcode():
    data = build_ecl([sub_record(44) + sub_end()], [main_end()])
    with pytest.raises(UnknownOpcodeError) as exc:
        parse_ecl(data)
    assert exc.value.opcode == 44


def test_unknown_main_opcode():
    with pytest.raises(UnknownOpcodeError) as exc:
        parse_ecl(build_ecl([], [main_record(3) + main_end()]))
    assert exc.value.dialect == "main"


def test_nonzero_main_count():
    data = build_ecl([sub_end()], [main_end()], main_count=1)
    with pytest.raises(UnsupportedFeatureError) as exc:
        parse_ecl(data)
    assert exc.value.main_count == 1


@pytest.mark.parametrize("data", [
    b'',
    b'\x01',
    struct.pack('<HH', 0, 0) + bytes(11),
    struct.pack('<HH3I', 2, 0, 0, 0, 0) + struct.pack('<I', 24),
])
def test_truncated_tables(data):
    with pytest.raises(TruncatedError):
        parse_ecl(data)


def test_offset_past_end():
    data = struct.pack('<HH3II', 1, 0, 0, 0, 0, 0x10000)
    with pytest.raises(TruncatedError):
        parse_ecl(data)


def test_missing_terminator():
    data = build_ecl([sub_record(0)], [main_end()])
    with pytest.raises(TruncatedError):
        parse_ecl(data)


def test_errors_are_value_errors():
    with pytest.raises(ValueError):
        parse_ecl(b'')


# =============================================================================
# FUZZING
# =============================================================================

def _decode_or_error(data):
    try:
        return parse_ecl(data)
    except EclError:
        return None


def test_random_bytes_never_crash():
    rng = random.Random(0xEC1)
    for _ in range(500):
        data = bytes(rng.getrandbits(8) for _ in range(rng.randrange(0, 200)))
        result = _decode_or_error(data)
        assert result is None or isinstance(result, Script)


def test_mutated_files_never_crash():
    rng = random.Random(6)
    base = sample_ecl()
    for _ in range(500):
        data = bytearray(base)
        for _ in range(rng.randrange(1, 6)):
            data[rng.randrange(len(data))] = rng.getrandbits(8)
        if rng.random() < 0.3:
            del data[rng.randrange(len(data)):]
        result = _decode_or_error(bytes(data))
        assert result is None or isinstance(result, Script)


# =============================================================================
# REGRESSION
# =============================================================================

@pytest.mark.skipif(not os.path.exists(REFERENCE_FILE),
                    reason="reference ecldata1.ecl not available")
def test_reference_file():
    with open(REFERENCE_FILE, 'rb') as f:
        script = parse_ecl(f.read())
    assert len(script.subs) == 24
    assert len(script.mains) == 1
