#!/usr/bin/env python3
"""
Program Fusion Report

读取 JSON 格式的程序描述，使用默认算子表和融合模板目录进行优化，
打印每个模板的融合次数，可选地写出优化后的程序。

Usage:
    python scripts/optimize_program.py model_program.json --output fused.json --debug
"""

import argparse
import json
import logging
import sys

from opfuse.errors import FusionError
from opfuse.fusion_config import FusionConfig
from opfuse.optimizer import ProgramOptimizer
from opfuse.program import ProgramDesc


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Fuse operator chains in a program description")
    parser.add_argument("program", help="Path to program JSON")
    parser.add_argument("--output", "-o", default=None, help="Write optimized program JSON here")
    parser.add_argument(
        "--disable",
        action="append",
        default=[],
        help="Disable a fusion template by name (repeatable)",
    )
    parser.add_argument("--debug", action="store_true", help="Log per-candidate match decisions")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    with open(args.program, "r", encoding="utf-8") as f:
        program = ProgramDesc.from_dict(json.load(f))

    config = FusionConfig(debug_mode=args.debug, disabled_patterns=tuple(args.disable))
    optimizer = ProgramOptimizer(config=config)

    try:
        optimized = optimizer.optimize(program)
    except FusionError as e:
        print(f"[Fusion][Error] {e}", file=sys.stderr)
        return 1

    stats = optimizer.get_stats()
    before = sum(len(block.ops) for block in program.blocks)
    after = sum(len(block.ops) for block in optimized.blocks)

    print("=" * 60)
    print(f"Ops: {before} -> {after} (removed {stats['removed_ops']})")
    for name, count in stats["fused"].items():
        print(f"  {name:<28} x{count}")
    print("=" * 60)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(optimized.to_dict(), f, indent=2)
        print(f"Optimized program written to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
