"""
Tests for the benchmark harness adapters.

Covers:
- Rust libtest bench output (units, thousands separators, ignored tests)
- Go testing bench output (suffix stripping, extra measures)
- JSON canonical output
- Magic auto-detection and error reporting
- Typed errors for hostile input (deep nesting, non-finite numbers)
"""

from __future__ import annotations

import logging

import pytest

from perfwatch.adapters import (
    GoBenchAdapter,
    JsonAdapter,
    MagicAdapter,
    RustBenchAdapter,
    get_adapter,
    parse_output,
)
from perfwatch.adapters.base import LineCursor, parse_number, to_nanoseconds
from perfwatch.core.errors import AdapterNoMatch, AdapterParseError
from perfwatch.models import AdapterKind

from tests.conftest import GO_BENCH_OUTPUT, JSON_OUTPUT, RUST_BENCH_OUTPUT


class TestHelpers:
    def test_parse_number_drops_grouping(self) -> None:
        assert parse_number("1,246") == 1246.0
        assert parse_number("1,000,000.5") == 1_000_000.5

    @pytest.mark.parametrize(
        ("unit", "expected"),
        [("ns", 3.0), ("μs", 3_000.0), ("µs", 3_000.0), ("us", 3_000.0), ("ms", 3e6), ("s", 3e9)],
    )
    def test_to_nanoseconds(self, unit: str, expected: float) -> None:
        assert to_nanoseconds(3.0, unit) == expected

    def test_unknown_unit_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_nanoseconds(1.0, "fortnights")

    def test_numbers_must_be_finite(self) -> None:
        with pytest.raises(ValueError):
            parse_number("9" * 400)
        with pytest.raises(ValueError):
            to_nanoseconds(1e300, "s")

    def test_line_cursor_tracks_remainder(self) -> None:
        cursor = LineCursor("\n\nfirst\nsecond")
        assert cursor.skip_blank() == 2
        assert cursor.peek() == "first"
        cursor.advance()
        assert cursor.remainder == "second"
        cursor.advance()
        assert cursor.exhausted
        assert cursor.peek() is None


class TestRustBenchAdapter:
    def test_parses_all_time_units(self) -> None:
        results = RustBenchAdapter().parse(RUST_BENCH_OUTPUT)

        assert list(results) == [
            "tests::bench_add_two",
            "tests::bench_add_three",
            "tests::bench_add_four",
            "tests::bench_add_five",
        ]
        two = results["tests::bench_add_two"]["latency"]
        assert two.value == 1246.0
        assert two.lower_variance == 14.0
        assert two.upper_variance == 14.0
        assert results["tests::bench_add_three"]["latency"].value == pytest.approx(1500.0)
        assert results["tests::bench_add_three"]["latency"].upper_variance == pytest.approx(2000.0)
        assert results["tests::bench_add_four"]["latency"].value == 3e6
        assert results["tests::bench_add_five"]["latency"].value == 2e9

    def test_milliseconds_per_iteration(self) -> None:
        raw = "running 1 test\ntest a ... bench:          12 ms/iter (+/- 1)\n"
        result = RustBenchAdapter().parse(raw)["a"]["latency"]
        assert result.value == 12_000_000.0
        assert result.lower_variance == 1_000_000.0

    def test_ignored_tests_are_skipped(self) -> None:
        results = RustBenchAdapter().parse(RUST_BENCH_OUTPUT)
        assert "tests::ignored" not in results

    def test_only_ignored_tests_yields_empty_results(self) -> None:
        raw = "running 1 test\ntest tests::slow ... ignored\n"
        assert RustBenchAdapter().parse(raw) == {}

    def test_later_target_blocks_are_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        raw = (
            "running 0 tests\n"
            "\n"
            "test result: ok. 0 passed; 0 failed; 0 ignored; 0 measured\n"
            "\n"
            "running 1 test\n"
            "test a ... bench:          10 ns/iter (+/- 1)\n"
        )
        with caplog.at_level(logging.DEBUG, logger="perfwatch.adapters.rust"):
            assert RustBenchAdapter().parse(raw) == {}
        assert "ignoring" in caplog.text
        assert "test result" in caplog.text

    def test_oversized_number_is_a_parse_error(self) -> None:
        raw = f"running 1 test\ntest a ... bench: {'9' * 400} ns/iter (+/- 1)\n"
        with pytest.raises(AdapterParseError) as exc_info:
            RustBenchAdapter().parse(raw)
        assert exc_info.value.remainder.startswith("test a")

    def test_missing_preamble_is_a_parse_error(self) -> None:
        with pytest.raises(AdapterParseError) as exc_info:
            RustBenchAdapter().parse("test a ... bench: 1 ns/iter (+/- 0)\n")
        assert exc_info.value.adapter == "rust_bench"

    def test_malformed_bench_line_reports_remainder(self) -> None:
        raw = (
            "running 2 tests\n"
            "test a ... bench:          10 ns/iter (+/- 1)\n"
            "test b ... bench: lots of time\n"
            "\n"
        )
        with pytest.raises(AdapterParseError) as exc_info:
            RustBenchAdapter().parse(raw)
        assert exc_info.value.remainder.startswith("test b ... bench: lots of time")

    def test_unknown_time_unit_is_a_parse_error(self) -> None:
        raw = "running 1 test\ntest a ... bench:          10 ks/iter (+/- 1)\n"
        with pytest.raises(AdapterParseError):
            RustBenchAdapter().parse(raw)

    def test_matches(self) -> None:
        adapter = RustBenchAdapter()
        assert adapter.matches(RUST_BENCH_OUTPUT)
        assert not adapter.matches(GO_BENCH_OUTPUT)
        assert not adapter.matches(JSON_OUTPUT)


class TestGoBenchAdapter:
    def test_parses_measures_and_strips_procs_suffix(self) -> None:
        results = GoBenchAdapter().parse(GO_BENCH_OUTPUT)

        assert list(results) == ["BenchmarkFib10", "BenchmarkFib20"]
        fib10 = results["BenchmarkFib10"]
        assert fib10["latency"].value == pytest.approx(261.3)
        assert fib10["memory"].value == 16.0
        assert fib10["allocations"].value == 1.0
        assert set(results["BenchmarkFib20"]) == {"latency"}

    def test_throughput_and_custom_units(self) -> None:
        raw = "BenchmarkCopy-4  1000  1200 ns/op  850.25 MB/s  7 widgets/op\n"
        results = GoBenchAdapter().parse(raw)
        measures = results["BenchmarkCopy"]
        assert measures["throughput"].value == pytest.approx(850.25)
        assert measures["widgets/op"].value == 7.0

    def test_line_without_ns_per_op_is_a_parse_error(self) -> None:
        with pytest.raises(AdapterParseError):
            GoBenchAdapter().parse("BenchmarkOdd-8  100  16 B/op\n")

    def test_garbage_line_is_a_parse_error(self) -> None:
        raw = "goos: linux\nBenchmarkA-8  10  5 ns/op\nthis is not a benchmark\n"
        with pytest.raises(AdapterParseError) as exc_info:
            GoBenchAdapter().parse(raw)
        assert exc_info.value.remainder.startswith("this is not a benchmark")

    def test_repeated_benchmark_is_a_parse_error(self) -> None:
        raw = "BenchmarkA-8  10  5 ns/op\nBenchmarkA-8  10  6 ns/op\n"
        with pytest.raises(AdapterParseError) as exc_info:
            GoBenchAdapter().parse(raw)
        assert "duplicate" in str(exc_info.value)
        assert exc_info.value.remainder.startswith("BenchmarkA-8  10  6 ns/op")

    def test_oversized_number_is_a_parse_error(self) -> None:
        with pytest.raises(AdapterParseError):
            GoBenchAdapter().parse(f"BenchmarkA-8  10  {'9' * 400} ns/op\n")


class TestJsonAdapter:
    def test_parses_canonical_mapping(self) -> None:
        results = JsonAdapter().parse(JSON_OUTPUT)
        assert results["bench_a"]["latency"].value == 88.0
        assert results["bench_a"]["latency"].lower_variance == 1.0
        assert results["bench_b"]["throughput"].value == 42.0

    def test_invalid_json(self) -> None:
        with pytest.raises(AdapterParseError):
            JsonAdapter().parse('{"bench": ')

    def test_deep_nesting_is_a_parse_error(self) -> None:
        raw = '{"a":' + "[" * 100_000
        with pytest.raises(AdapterParseError) as exc_info:
            parse_output(raw, AdapterKind.JSON)
        assert exc_info.value.adapter == "json"

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e999"])
    def test_non_finite_values_are_rejected(self, literal: str) -> None:
        with pytest.raises(AdapterParseError) as exc_info:
            parse_output(f'{{"b": {{"latency": {{"value": {literal}}}}}}}', AdapterKind.JSON)
        assert "b.latency.value" in str(exc_info.value)

    def test_non_finite_variance_is_rejected(self) -> None:
        with pytest.raises(AdapterParseError):
            JsonAdapter().parse('{"b": {"latency": {"value": 1.0, "upper_variance": NaN}}}')

    def test_wrong_shape(self) -> None:
        with pytest.raises(AdapterParseError) as exc_info:
            JsonAdapter().parse('{"bench": {"latency": {"value": "fast"}}}')
        assert "bench.latency.value" in str(exc_info.value)


class TestMagicAdapter:
    @pytest.mark.parametrize(
        ("raw", "expected_benchmark"),
        [
            (RUST_BENCH_OUTPUT, "tests::bench_add_two"),
            (GO_BENCH_OUTPUT, "BenchmarkFib10"),
            (JSON_OUTPUT, "bench_a"),
        ],
    )
    def test_detects_format(self, raw: str, expected_benchmark: str) -> None:
        assert expected_benchmark in MagicAdapter().parse(raw)

    def test_no_match(self) -> None:
        with pytest.raises(AdapterNoMatch) as exc_info:
            parse_output("hello world\n")
        assert set(exc_info.value.tried) == {"json", "rust_bench", "go_bench"}

    def test_matching_but_broken_input_reports_parse_error(self) -> None:
        raw = "running 1 test\ntest a ... bench: nope\n"
        with pytest.raises(AdapterParseError) as exc_info:
            parse_output(raw, AdapterKind.MAGIC)
        assert exc_info.value.adapter == "rust_bench"

    def test_explicit_kind_does_not_fall_back(self) -> None:
        with pytest.raises(AdapterParseError):
            parse_output(GO_BENCH_OUTPUT, AdapterKind.RUST_BENCH)

    def test_get_adapter_accepts_strings(self) -> None:
        assert isinstance(get_adapter("go_bench"), GoBenchAdapter)
        assert isinstance(get_adapter("magic"), MagicAdapter)


@pytest.mark.parametrize(
    ("kind", "raw"),
    [
        (AdapterKind.RUST_BENCH, RUST_BENCH_OUTPUT),
        (AdapterKind.GO_BENCH, GO_BENCH_OUTPUT),
        (AdapterKind.JSON, JSON_OUTPUT),
        (AdapterKind.MAGIC, GO_BENCH_OUTPUT),
    ],
)
def test_parsing_is_repeatable(kind: AdapterKind, raw: str) -> None:
    first = parse_output(raw, kind)
    second = parse_output(raw, kind)
    assert first == second
    assert list(first) == list(second)
