"""
JSON adapter: the canonical results mapping serialized as a JSON object.

    {"bench_name": {"latency": {"value": 3161.0, "lower_variance": 975.0}}}
"""

from __future__ import annotations

import json

from pydantic import TypeAdapter, ValidationError

from perfwatch.adapters.base import Adapter
from perfwatch.models.metrics import BenchmarkResults, MetricResult
from perfwatch.models.report import AdapterKind

_RESULTS = TypeAdapter(dict[str, dict[str, MetricResult]])


class JsonAdapter(Adapter):
    kind = AdapterKind.JSON

    def matches(self, raw: str) -> bool:
        return raw.lstrip().startswith("{")

    def parse(self, raw: str) -> BenchmarkResults:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise self.error(e.msg, raw[e.pos :]) from e
        except (RecursionError, ValueError) as e:
            # nesting too deep for the decoder, or an integer literal over the digit limit
            raise self.error(f"undecodable JSON: {e}", raw.lstrip()) from e

        if not isinstance(data, dict):
            raise self.error("expected a JSON object", raw.lstrip())

        try:
            return _RESULTS.validate_python(data)
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first["loc"])
            raise self.error(f"{loc}: {first['msg']}", raw.lstrip()) from e
