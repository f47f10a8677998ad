# ========================
# src/store/__init__.py
# ========================

"""
Contact Store Package

Persistence collaborators for the import pipeline:
- base: ListStore contract and shared value types
- memory: in-process store
- sqlite: SQLite-file store
"""

from .base import (
    BulkInsertResult,
    ContactList,
    ListStore,
    RecordWriteError,
    StoreError,
    is_list_id,
)
from .memory import InMemoryListStore
from .sqlite import SQLiteListStore


def create_store(config) -> ListStore:
    """Build the store selected by `config.STORE_BACKEND`."""
    backend = config.STORE_BACKEND.lower()
    if backend == 'memory':
        return InMemoryListStore()
    if backend == 'sqlite':
        return SQLiteListStore(config.DATABASE_PATH)
    raise ValueError(f"Unknown store backend: {config.STORE_BACKEND}")


__all__ = [
    'BulkInsertResult',
    'ContactList',
    'InMemoryListStore',
    'ListStore',
    'RecordWriteError',
    'SQLiteListStore',
    'StoreError',
    'create_store',
    'is_list_id',
]
