"""
In-Memory Storage Implementation

Dictionary-backed stores for tests and for sessions that do not need to
survive a restart. Each store serializes its writes with an asyncio.Lock,
which makes upsert-by-key atomic within one event loop.
"""

import asyncio
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.rates import CachedRate, RateKey
from expense_tracker.models.transaction import ExpenseCategory, Transaction
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    RateCacheStorageInterface,
    TransactionStorageInterface,
)


def _newest_first(transactions) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.timestamp, reverse=True)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions keyed by id."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {
            t.id: t for t in (transactions or [])
        }
        self._lock = asyncio.Lock()

    async def get_all(self) -> list[Transaction]:
        return _newest_first(self._transactions.values())

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def insert(self, transaction: Transaction) -> bool:
        async with self._lock:
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            self._transactions[transaction.id] = transaction
        return True

    async def insert_many(self, transactions: list[Transaction]) -> int:
        async with self._lock:
            ids = [t.id for t in transactions]
            clashes = [i for i in ids if i in self._transactions]
            if clashes or len(set(ids)) != len(ids):
                raise DuplicateError(f"Duplicate transaction ids: {clashes or ids}")
            for transaction in transactions:
                self._transactions[transaction.id] = transaction
        return len(transactions)

    async def update(self, transaction: Transaction) -> bool:
        async with self._lock:
            if transaction.id not in self._transactions:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._transactions[transaction.id] = transaction
        return True

    async def delete(self, transaction_id: str) -> bool:
        async with self._lock:
            return self._transactions.pop(transaction_id, None) is not None

    async def count(self) -> int:
        return len(self._transactions)

    async def list_by_category(self, category: ExpenseCategory) -> list[Transaction]:
        return _newest_first(
            t for t in self._transactions.values() if t.category == category
        )

    async def list_by_date_range(
        self,
        start: datetime,
        end: datetime,
    ) -> list[Transaction]:
        return _newest_first(
            t for t in self._transactions.values() if start <= t.timestamp <= end
        )

    async def list_by_amount_range(
        self,
        min_amount: float,
        max_amount: float,
    ) -> list[Transaction]:
        return _newest_first(
            t for t in self._transactions.values()
            if min_amount <= t.amount <= max_amount
        )


class InMemoryRateCacheStorage(RateCacheStorageInterface):
    """Cached rates keyed by (base, target, date)."""

    def __init__(self, rates: Optional[list[CachedRate]] = None):
        self._rates: dict[RateKey, CachedRate] = {r.key: r for r in (rates or [])}
        self._lock = asyncio.Lock()

    async def get(
        self,
        base_currency: str,
        target_currency: str,
        on_date: Optional[date] = None,
    ) -> Optional[CachedRate]:
        if on_date is not None:
            return self._rates.get(RateKey(base_currency, target_currency, on_date))

        matches = [
            r for r in self._rates.values()
            if r.base_currency == base_currency and r.target_currency == target_currency
        ]
        if not matches:
            return None
        return max(matches, key=lambda r: r.date)

    async def upsert_many(self, rates: list[CachedRate]) -> int:
        async with self._lock:
            for rate in rates:
                self._rates[rate.key] = rate
        return len(rates)

    async def delete_older_than(self, cutoff: date) -> int:
        async with self._lock:
            stale = [key for key in self._rates if key.date < cutoff]
            for key in stale:
                del self._rates[key]
        return len(stale)

    async def distinct_base_currencies(self) -> list[str]:
        return sorted({key.base_currency for key in self._rates})

    async def most_recent_by_base(self, base_currency: str) -> Optional[CachedRate]:
        matches = [r for r in self._rates.values() if r.base_currency == base_currency]
        if not matches:
            return None
        return max(matches, key=lambda r: r.last_fetched_at)

    async def rates_for_base(
        self,
        base_currency: str,
        on_date: Optional[date] = None,
    ) -> list[CachedRate]:
        matches = [r for r in self._rates.values() if r.base_currency == base_currency]
        if not matches:
            return []
        day = on_date if on_date is not None else max(r.date for r in matches)
        return sorted(
            (r for r in matches if r.date == day),
            key=lambda r: r.target_currency,
        )

    async def count(self) -> int:
        return len(self._rates)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
