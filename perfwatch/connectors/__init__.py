"""
Database connectors.
"""

from perfwatch.connectors import postgres_pool

__all__ = ["postgres_pool"]
