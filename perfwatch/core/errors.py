"""
Core error types.

Adapter and statistic-config errors are local and recoverable: the caller can
retry with corrected input. StorageFailure always means the enclosing
transaction was rolled back.
"""

from __future__ import annotations

from typing import Any


class PerfWatchError(Exception):
    """Base class for all errors raised by the ingestion core."""

    code = "PERFWATCH_ERROR"


class AdapterError(PerfWatchError):
    code = "ADAPTER_ERROR"


class AdapterNoMatch(AdapterError):
    """The raw output did not look like any registered harness format."""

    code = "ADAPTER_NO_MATCH"

    def __init__(self, tried: list[str] | None = None):
        self.tried = list(tried or [])
        detail = f" (tried: {', '.join(self.tried)})" if self.tried else ""
        super().__init__(f"No adapter matched the benchmark output{detail}")


class AdapterParseError(AdapterError):
    """The output matched a format's preamble but could not be fully parsed."""

    code = "ADAPTER_PARSE_ERROR"

    def __init__(self, adapter: str, message: str, remainder: str = ""):
        self.adapter = adapter
        self.remainder = remainder
        preview = remainder[:80].replace("\n", "\\n")
        super().__init__(f"[{adapter}] {message} at: {preview!r}")


class InvalidStatisticConfig(PerfWatchError):
    code = "INVALID_STATISTIC"


class NotFound(PerfWatchError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, key: Any):
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} not found: {key}")


class ThresholdInUse(PerfWatchError):
    """A threshold still has boundaries referencing it."""

    code = "THRESHOLD_IN_USE"


class StorageFailure(PerfWatchError):
    code = "STORAGE_FAILURE"


class AlreadyExists(PerfWatchError):
    code = "ALREADY_EXISTS"

    def __init__(self, resource: str, key: Any):
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} already exists: {key}")
