"""
Rust libtest bench adapter (`cargo bench`).

Expected shape:

    running 2 tests
    test tests::ignored ... ignored
    test tests::benchmark ... bench:       3,161 ns/iter (+/- 975)

    test result: ok. 0 passed; 0 failed; 1 ignored; 1 measured; ...

Everything after the blank line closing the test block is ignored.
"""

from __future__ import annotations

import logging
import re

from perfwatch.adapters.base import (
    NUMBER_PATTERN,
    Adapter,
    LineCursor,
    parse_number,
    to_nanoseconds,
)
from perfwatch.models.metrics import LATENCY, BenchmarkResults, latency
from perfwatch.models.report import AdapterKind

logger = logging.getLogger(__name__)

_PREAMBLE = re.compile(r"running (\d+) tests?")
_TEST_LINE = re.compile(r"test\s+(\S+)\s+\.\.\.\s+(.*)")
_IGNORED = re.compile(r"ignored(?:,.*)?")
_BENCH = re.compile(
    rf"bench:\s+({NUMBER_PATTERN})\s+(\S+?)/iter\s+\(\+/-\s+({NUMBER_PATTERN})\)"
)


class RustBenchAdapter(Adapter):
    kind = AdapterKind.RUST_BENCH

    def matches(self, raw: str) -> bool:
        cursor = LineCursor(raw)
        cursor.skip_blank()
        line = cursor.peek()
        return line is not None and _PREAMBLE.fullmatch(line.strip()) is not None

    def parse(self, raw: str) -> BenchmarkResults:
        cursor = LineCursor(raw)
        cursor.skip_blank()

        line = cursor.peek()
        if line is None or _PREAMBLE.fullmatch(line.strip()) is None:
            raise self.error("expected 'running N tests' preamble", cursor.remainder)
        cursor.advance()

        results: BenchmarkResults = {}
        while (line := cursor.peek()) is not None and line.strip():
            test = _TEST_LINE.fullmatch(line.strip())
            if test is None:
                raise self.error("expected a 'test <name> ...' line", cursor.remainder)

            name, outcome = test.group(1), test.group(2).strip()
            if _IGNORED.fullmatch(outcome):
                cursor.advance()
                continue

            bench = _BENCH.fullmatch(outcome)
            if bench is None:
                raise self.error("expected 'ignored' or a bench result", cursor.remainder)

            duration, unit, variance = bench.groups()
            try:
                duration_ns = to_nanoseconds(parse_number(duration), unit)
                variance_ns = to_nanoseconds(parse_number(variance), unit)
            except ValueError as e:
                raise self.error(str(e), cursor.remainder) from e

            results[name] = {LATENCY: latency(duration_ns, variance_ns)}
            cursor.advance()

        # The block ends at a blank line or end of input. Only the first block is
        # read: `cargo bench` prints one per target, often an empty lib block first.
        cursor.skip_blank()
        if not cursor.exhausted:
            trailing = cursor.peek() or ""
            logger.debug(
                f"rust_bench: ignoring {len(cursor.remainder)} trailing characters "
                f"after the first test block (next line: {trailing[:60]!r})"
            )
        return results
