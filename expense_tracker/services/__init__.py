"""Services package."""

from expense_tracker.services.rates import (
    InvalidInputError,
    RateSourceError,
    RemoteFailureError,
    RemoteRateSource,
)
from expense_tracker.services.settings import (
    InMemorySettingsProvider,
    SettingsProvider,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryRateCacheStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    RateCacheStorageInterface,
    SQLiteAuditStorage,
    SQLiteDatabase,
    SQLiteRateCacheStorage,
    SQLiteTransactionStorage,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Remote rates
    "InvalidInputError",
    "RateSourceError",
    "RemoteFailureError",
    "RemoteRateSource",
    # Settings
    "InMemorySettingsProvider",
    "SettingsProvider",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryRateCacheStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "RateCacheStorageInterface",
    "SQLiteAuditStorage",
    "SQLiteDatabase",
    "SQLiteRateCacheStorage",
    "SQLiteTransactionStorage",
    "StorageError",
    "TransactionStorageInterface",
]
