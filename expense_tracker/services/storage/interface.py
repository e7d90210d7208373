"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap SQLite for another local store later
2. Use in-memory storage for testing
3. Keep rate resolution and analytics decoupled from persistence

The interface is intentionally simple - plain CRUD plus the handful of
queries the rate resolver needs. Change notification for UI layers is
not part of it; the core always works on explicit snapshots.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.rates import CachedRate
from expense_tracker.models.transaction import ExpenseCategory, Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.
    """

    @abstractmethod
    async def get_all(self) -> list[Transaction]:
        """
        Snapshot of every stored transaction, newest first.
        """
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, transaction: Transaction) -> bool:
        """
        Store a new transaction.

        Raises:
            DuplicateError: If a transaction with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def insert_many(self, transactions: list[Transaction]) -> int:
        """
        Store several new transactions. Returns the number stored.

        Raises:
            DuplicateError: If any id already exists (nothing is stored)
        """
        pass

    @abstractmethod
    async def update(self, transaction: Transaction) -> bool:
        """
        Replace the stored transaction that has the same id.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a transaction was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def list_by_category(self, category: ExpenseCategory) -> list[Transaction]:
        pass

    @abstractmethod
    async def list_by_date_range(
        self,
        start: datetime,
        end: datetime,
    ) -> list[Transaction]:
        """
        Transactions with start <= timestamp <= end, newest first.
        """
        pass

    @abstractmethod
    async def list_by_amount_range(
        self,
        min_amount: float,
        max_amount: float,
    ) -> list[Transaction]:
        pass


class RateCacheStorageInterface(ABC):
    """
    Abstract interface for the exchange rate cache.

    At most one rate exists per (base, target, date). Writes to the same
    key replace the earlier row (last writer wins).
    """

    @abstractmethod
    async def get(
        self,
        base_currency: str,
        target_currency: str,
        on_date: Optional[date] = None,
    ) -> Optional[CachedRate]:
        """
        Look up one rate.

        Args:
            base_currency: Currency the rate is from
            target_currency: Currency the rate is to
            on_date: Exact day, or None for the most recent day stored
                     for this pair

        Returns:
            The cached rate, or None
        """
        pass

    @abstractmethod
    async def upsert_many(self, rates: list[CachedRate]) -> int:
        """
        Insert or replace rates by (base, target, date). Atomic per call.

        Returns:
            Number of rows written
        """
        pass

    @abstractmethod
    async def delete_older_than(self, cutoff: date) -> int:
        """
        Delete every rate dated strictly before cutoff.

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    async def distinct_base_currencies(self) -> list[str]:
        """
        Every base currency with at least one cached rate, in the store's
        reporting order.
        """
        pass

    @abstractmethod
    async def most_recent_by_base(self, base_currency: str) -> Optional[CachedRate]:
        """
        The rate for this base with the greatest last_fetched_at, or None.
        """
        pass

    @abstractmethod
    async def rates_for_base(
        self,
        base_currency: str,
        on_date: Optional[date] = None,
    ) -> list[CachedRate]:
        """
        Rates for a base on a given day, or on its most recent day when
        on_date is None. Ordered by target currency.
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
