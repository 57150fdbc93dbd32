#!/usr/bin/env python3
"""Parse benchmark harness output and print the canonical results as JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from perfwatch.adapters import parse_output
from perfwatch.config import settings
from perfwatch.core.errors import AdapterError
from perfwatch.models import AdapterKind


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Normalize benchmark harness output into benchmark -> measure -> result JSON."
    )
    parser.add_argument(
        "path",
        nargs="?",
        default="-",
        help="File with the harness output (default: stdin).",
    )
    parser.add_argument(
        "--adapter",
        choices=[kind.value for kind in AdapterKind],
        default=settings.DEFAULT_ADAPTER.value,
        help="Harness format (default: %(default)s).",
    )
    parser.add_argument("--indent", type=int, default=2, help="JSON indent.")
    return parser


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    try:
        results = parse_output(_read(args.path), AdapterKind(args.adapter))
    except AdapterError as e:
        print(f"[parse] {e}", file=sys.stderr)
        return 1

    payload = {
        benchmark: {
            measure: result.model_dump(exclude_none=True) for measure, result in measures.items()
        }
        for benchmark, measures in results.items()
    }
    print(json.dumps(payload, indent=args.indent))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
