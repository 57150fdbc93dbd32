"""
Go testing bench adapter (`go test -bench`).

Expected shape:

    goos: linux
    goarch: amd64
    pkg: example.com/fib
    BenchmarkFib10-8   	 3000000	       425 ns/op	      0 B/op	       0 allocs/op
    PASS
    ok  	example.com/fib	1.234s
"""

from __future__ import annotations

import re

from perfwatch.adapters.base import NUMBER_PATTERN, Adapter, LineCursor, parse_number
from perfwatch.models.metrics import (
    ALLOCATIONS,
    LATENCY,
    MEMORY,
    THROUGHPUT,
    BenchmarkResults,
    MetricResult,
)
from perfwatch.models.report import AdapterKind

_HEADER = re.compile(r"(goos|goarch|pkg|cpu):\s.*")
_FOOTER = re.compile(r"PASS|ok\s+.*")
_BENCH = re.compile(r"(Benchmark\S*?)(?:-\d+)?\s+(\d+)((?:\s+\S+\s+\S+)+)")
_VALUE = re.compile(rf"({NUMBER_PATTERN})\s+(\S+)")

# Go reports one value per unit; map the standard ones to measure names.
_UNIT_MEASURES = {
    "ns/op": LATENCY,
    "B/op": MEMORY,
    "allocs/op": ALLOCATIONS,
    "MB/s": THROUGHPUT,
}


class GoBenchAdapter(Adapter):
    kind = AdapterKind.GO_BENCH

    def matches(self, raw: str) -> bool:
        cursor = LineCursor(raw)
        cursor.skip_blank()
        line = cursor.peek()
        if line is None:
            return False
        line = line.strip()
        return _HEADER.fullmatch(line) is not None or line.startswith("Benchmark")

    def parse(self, raw: str) -> BenchmarkResults:
        cursor = LineCursor(raw)
        results: BenchmarkResults = {}

        while (line := cursor.peek()) is not None:
            stripped = line.strip()
            if not stripped or _HEADER.fullmatch(stripped) or _FOOTER.fullmatch(stripped):
                cursor.advance()
                continue

            bench = _BENCH.fullmatch(stripped)
            if bench is None:
                raise self.error("expected a 'BenchmarkName N value unit' line", cursor.remainder)

            name, _iterations, tail = bench.groups()
            if name in results:
                # `-count N` repeats a benchmark; submit each run as its own iteration.
                raise self.error(f"duplicate benchmark {name!r}", cursor.remainder)

            measures: dict[str, MetricResult] = {}
            for value, unit in _VALUE.findall(tail):
                measure = _UNIT_MEASURES.get(unit, unit)
                try:
                    measures[measure] = MetricResult(value=parse_number(value))
                except ValueError as e:
                    raise self.error(str(e), cursor.remainder) from e

            if LATENCY not in measures:
                raise self.error("benchmark line has no ns/op value", cursor.remainder)

            results[name] = measures
            cursor.advance()

        return results
