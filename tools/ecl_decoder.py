#!/usr/bin/env python3
"""
ECL Enemy Script Decoder
==========================
Decode ECL files (enemy control bytecode) into readable instruction listings.

An ECL file carries two dialects:
  - Subs: per-enemy behaviour scripts (movement, bullets, lasers, callbacks)
  - Main: the stage schedule, spawning enemies that run a given sub

Format:
  - Header: uint16 sub_count, uint16 main_count (0)
  - uint32[3] main offsets, uint32[sub_count] sub offsets
  - Sub records:  int32 time, uint16 opcode, uint16 size, uint16 rank, uint16 param, args
  - Main records: uint16 time, uint16 sub, uint16 opcode, uint16 size, args

Rank column: difficulties the instruction runs on (ALL, or EASY|NORMAL|...).

Usage:
  python3 ecl_decoder.py ecldata1.ecl                 # Everything
  python3 ecl_decoder.py ecldata1.ecl --sub 3         # Single sub
  python3 ecl_decoder.py ecldata1.ecl --main          # Spawn schedule only
  python3 ecl_decoder.py ecldata1.ecl --rank lunatic  # Lunatic-only view
  python3 ecl_decoder.py ecldata1.ecl --stats         # Opcode statistics
  python3 ecl_decoder.py --opcodes                    # Opcode tables
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from ecl.constants import Rank, rank_str
from ecl.errors import EclError, InvalidRankNameError
from ecl.opcodes import (
    MAIN_INSTRUCTIONS, SUB_INSTRUCTIONS, args_size, format_instruction, signature,
)
from ecl.script import parse_ecl


# =============================================================================
# DISPLAY MODES
# =============================================================================

def show_sub(script, idx, rank=None):
    """Print one sub, optionally keeping only calls active on `rank`."""
    sub = script.subs[idx]
    calls = [c for c in sub.instructions if rank is None or c.rank_mask & rank]
    print(f"Sub {idx}: {len(sub.instructions)} instructions")
    for call in calls:
        param = f" param=0x{call.param_mask:04X}" if call.param_mask else ""
        print(f"  {call.time:6d}  {rank_str(call.rank_mask):<22}"
              f"{format_instruction(call.instruction)}{param}")


def show_main(script):
    for idx, main in enumerate(script.mains):
        print(f"Main {idx}: {len(main.instructions)} calls")
        for call in main.instructions:
            print(f"  {call.time:6d}  sub {call.sub:3d}  "
                  f"{format_instruction(call.instruction)}")


def show_all(script, rank=None):
    show_main(script)
    for idx in range(len(script.subs)):
        print()
        show_sub(script, idx, rank)


def show_stats(script, data):
    """Show sizes, counts and per-opcode usage."""
    sub_ops = {}
    main_ops = {}
    for sub in script.subs:
        for call in sub.instructions:
            cls = type(call.instruction)
            sub_ops[cls] = sub_ops.get(cls, 0) + 1
    for main in script.mains:
        for call in main.instructions:
            cls = type(call.instruction)
            main_ops[cls] = main_ops.get(cls, 0) + 1

    n_sub = sum(len(s.instructions) for s in script.subs)
    n_main = sum(len(m.instructions) for m in script.mains)

    print(f"=== ECL Statistics ===")
    print(f"  File size:          {len(data):,} bytes")
    print(f"  Subs:               {len(script.subs)}")
    print(f"  Mains:              {len(script.mains)}")
    print(f"  Sub instructions:   {n_sub}")
    print(f"  Main instructions:  {n_main}")
    print(f"  Distinct sub ops:   {len(sub_ops)} of {len(SUB_INSTRUCTIONS)}")

    print(f"\n  Sub opcodes:")
    for cls, count in sorted(sub_ops.items(), key=lambda x: (-x[1], x[0].opcode)):
        print(f"    {cls.opcode:3d} {cls.__name__:<30} {count:5d}")
    print(f"\n  Main opcodes:")
    for cls, count in sorted(main_ops.items(), key=lambda x: (-x[1], x[0].opcode)):
        print(f"    {cls.opcode:3d} {cls.__name__:<30} {count:5d}")


def show_opcodes():
    """Print both opcode tables with record sizes."""
    print(f"=== Main opcodes ({len(MAIN_INSTRUCTIONS)}) ===")
    for opcode, cls in sorted(MAIN_INSTRUCTIONS.items()):
        print(f"  {opcode:3d} [{8 + args_size(cls):3d}b] {signature(cls)}")
    print(f"\n=== Sub opcodes ({len(SUB_INSTRUCTIONS)}) ===")
    for opcode, cls in sorted(SUB_INSTRUCTIONS.items()):
        print(f"  {opcode:3d} [{12 + args_size(cls):3d}b] {signature(cls)}")


# =============================================================================
# MAIN
# =============================================================================

def rank_arg(text):
    try:
        return Rank.from_str(text)
    except InvalidRankNameError as e:
        raise argparse.ArgumentTypeError(str(e))


def main(argv=None):
    p = argparse.ArgumentParser(
        description='ECL Enemy Script Decoder',
        formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument('file', nargs='?', help='ECL file')
    p.add_argument('--sub', type=int, default=None, metavar='N', help='Show single sub')
    p.add_argument('--main', action='store_true', help='Show the main schedule only')
    p.add_argument('--rank', type=rank_arg, default=None, metavar='NAME',
                   help='Only show sub calls active on easy/normal/hard/lunatic')
    p.add_argument('--stats', action='store_true', help='Show statistics')
    p.add_argument('--opcodes', action='store_true', help='List the opcode tables')
    args = p.parse_args(argv)

    if args.opcodes:
        show_opcodes()
        return 0
    if args.file is None:
        p.error("the following arguments are required: file")

    try:
        with open(args.file, 'rb') as f:
            data = f.read()
    except OSError as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 1

    try:
        script = parse_ecl(data)
    except EclError as e:
        print(f"{args.file}: {e}", file=sys.stderr)
        return 1

    basename = os.path.basename(args.file)
    print(f"  Loaded {basename}: {len(data):,} bytes, "
          f"{len(script.subs)} subs, {len(script.mains)} mains\n")

    if args.sub is not None:
        if args.sub < 0 or args.sub >= len(script.subs):
            print(f"Error: sub {args.sub} out of range (0-{len(script.subs) - 1})",
                  file=sys.stderr)
            return 1
        show_sub(script, args.sub, args.rank)
    elif args.main:
        show_main(script)
    elif args.stats:
        show_stats(script, data)
    else:
        show_all(script, args.rank)

    return 0


if __name__ == '__main__':
    sys.exit(main() or 0)
