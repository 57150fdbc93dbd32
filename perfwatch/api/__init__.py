"""
HTTP API for PerfWatch.
"""
