"""
Storage backends for the ingestion core.
"""

from perfwatch.config import settings
from perfwatch.storage.base import Store, StoreTransaction
from perfwatch.storage.memory import MemoryStore


def create_store(backend: str | None = None) -> Store:
    """Build the store selected by STORAGE_BACKEND."""
    backend = backend or settings.STORAGE_BACKEND
    if backend == "memory":
        return MemoryStore()
    if backend == "postgres":
        from perfwatch.connectors import postgres_pool
        from perfwatch.storage.postgres import PostgresStore

        return PostgresStore(postgres_pool.get_default_pool())
    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = ["MemoryStore", "Store", "StoreTransaction", "create_store"]
