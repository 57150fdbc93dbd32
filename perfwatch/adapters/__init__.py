"""
Benchmark harness adapters.

Each AdapterKind selects one implementation of the `parse` capability.
`AdapterKind.MAGIC` tries every registered adapter whose shape check accepts
the input, in registration order. New formats only need to be added to
ADAPTERS; the ingestion core never dispatches on format itself.
"""

from __future__ import annotations

import logging

from perfwatch.adapters.base import Adapter
from perfwatch.adapters.go import GoBenchAdapter
from perfwatch.adapters.json_adapter import JsonAdapter
from perfwatch.adapters.rust import RustBenchAdapter
from perfwatch.core.errors import AdapterNoMatch, AdapterParseError
from perfwatch.models.metrics import BenchmarkResults
from perfwatch.models.report import AdapterKind

logger = logging.getLogger(__name__)


ADAPTERS: dict[AdapterKind, Adapter] = {
    AdapterKind.JSON: JsonAdapter(),
    AdapterKind.RUST_BENCH: RustBenchAdapter(),
    AdapterKind.GO_BENCH: GoBenchAdapter(),
}


class MagicAdapter(Adapter):
    """Auto-detects the format by asking each registered adapter."""

    kind = AdapterKind.MAGIC

    def matches(self, raw: str) -> bool:
        return any(adapter.matches(raw) for adapter in ADAPTERS.values())

    def parse(self, raw: str) -> BenchmarkResults:
        first_error: AdapterParseError | None = None
        for kind, adapter in ADAPTERS.items():
            if not adapter.matches(raw):
                continue
            try:
                results = adapter.parse(raw)
            except AdapterParseError as e:
                logger.debug(f"Magic adapter: {kind.value} matched but failed: {e}")
                first_error = first_error or e
                continue
            logger.debug(f"Magic adapter selected {kind.value}")
            return results

        # A format recognized the preamble but could not parse the rest.
        if first_error is not None:
            raise first_error
        raise AdapterNoMatch(tried=[k.value for k in ADAPTERS])


def get_adapter(kind: AdapterKind | str) -> Adapter:
    kind = AdapterKind(kind)
    if kind == AdapterKind.MAGIC:
        return MagicAdapter()
    return ADAPTERS[kind]


def parse_output(raw: str, kind: AdapterKind | str = AdapterKind.MAGIC) -> BenchmarkResults:
    """Parse raw harness output with the adapter selected by `kind`."""
    return get_adapter(kind).parse(raw)


__all__ = [
    "ADAPTERS",
    "Adapter",
    "AdapterKind",
    "GoBenchAdapter",
    "JsonAdapter",
    "MagicAdapter",
    "RustBenchAdapter",
    "get_adapter",
    "parse_output",
]
