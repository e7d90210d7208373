"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
SQLite is the persistent backend; the in-memory stores back tests and
throwaway sessions.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RateCacheStorageInterface,
    StorageError,
    TransactionStorageInterface,
)
from expense_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRateCacheStorage,
    InMemoryTransactionStorage,
)
from expense_tracker.services.storage.sqlite import (
    SQLiteAuditStorage,
    SQLiteDatabase,
    SQLiteRateCacheStorage,
    SQLiteTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RateCacheStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRateCacheStorage",
    "InMemoryTransactionStorage",
    # SQLite implementation
    "SQLiteAuditStorage",
    "SQLiteDatabase",
    "SQLiteRateCacheStorage",
    "SQLiteTransactionStorage",
]
