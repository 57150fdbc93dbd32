"""
Adapter base class and shared parsing helpers.

An adapter is a grammar over one harness's textual report. `matches()` is a
cheap shape check used for auto-detection; `parse()` consumes the full input
and either returns canonical results or raises an AdapterError. Adapters are
pure: they never touch storage.
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod

from perfwatch.core.errors import AdapterParseError
from perfwatch.models.metrics import BenchmarkResults
from perfwatch.models.report import AdapterKind

# Multipliers to nanoseconds
TIME_UNITS_NS: dict[str, float] = {
    "ns": 1.0,
    "μs": 1_000.0,  # U+03BC greek mu
    "µs": 1_000.0,  # U+00B5 micro sign
    "us": 1_000.0,
    "ms": 1_000_000.0,
    "s": 1_000_000_000.0,
}

# Digits with optional thousands separators and an optional fraction.
NUMBER_PATTERN = r"\d+(?:,\d+)*(?:\.\d+)?"


def parse_number(text: str) -> float:
    """Parse a harness number, dropping `,` grouping separators."""
    value = float(text.replace(",", ""))
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {text!r}")
    return value


def to_nanoseconds(value: float, unit: str) -> float:
    try:
        nanoseconds = value * TIME_UNITS_NS[unit]
    except KeyError:
        raise ValueError(f"Unexpected time unit: {unit!r}") from None
    if not math.isfinite(nanoseconds):
        raise ValueError(f"Duration out of range: {value} {unit}")
    return nanoseconds


class LineCursor:
    """
    Line-oriented cursor over raw output.

    Keeps the byte offset of the next unconsumed line so parse errors can
    report the exact remainder.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    @property
    def exhausted(self) -> bool:
        return self.pos >= len(self.text)

    @property
    def remainder(self) -> str:
        return self.text[self.pos :]

    def peek(self) -> str | None:
        if self.exhausted:
            return None
        end = self.text.find("\n", self.pos)
        if end == -1:
            return self.text[self.pos :]
        return self.text[self.pos : end].rstrip("\r")

    def advance(self) -> None:
        end = self.text.find("\n", self.pos)
        self.pos = len(self.text) if end == -1 else end + 1

    def match(self, pattern: re.Pattern[str]) -> re.Match[str] | None:
        """Match `pattern` against the current line and consume it on success."""
        line = self.peek()
        if line is None:
            return None
        m = pattern.fullmatch(line)
        if m is not None:
            self.advance()
        return m

    def skip_blank(self) -> int:
        skipped = 0
        while (line := self.peek()) is not None and not line.strip():
            self.advance()
            skipped += 1
        return skipped


class Adapter(ABC):
    """Parses one harness output format into canonical results."""

    kind: AdapterKind

    @abstractmethod
    def matches(self, raw: str) -> bool:
        """Return True if `raw` looks like this adapter's format."""

    @abstractmethod
    def parse(self, raw: str) -> BenchmarkResults:
        """Parse `raw` fully or raise an AdapterError."""

    def error(self, message: str, remainder: str) -> AdapterParseError:
        return AdapterParseError(self.kind.value, message, remainder)
