"""
PerfWatch - continuous benchmarking core.

Normalizes benchmark harness output, stores it against versioned branches and
testbeds, and flags regressions with statistical thresholds.
"""

__version__ = "0.1.0"
