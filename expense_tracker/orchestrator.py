"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Transaction edits (validate → store → audit)
2. Rate maintenance (prune on startup, refresh when stale)
3. Monthly report (load → convert to base currency → aggregate → compare)

DESIGN DECISION: ExpenseTracker is the composition root.
Every collaborator is built once here (or passed in) and handed to its
consumers by reference. There are no module-level singletons; callers
hold the instance and close it with aclose().

The orchestrator enforces the boundaries:
- Aggregation only ever sees single-currency amounts when converting
- A transaction without a usable rate is reported, never guessed
- Every step is audited
"""

from datetime import datetime, time
from typing import Optional, Union

import httpx
import structlog

from expense_tracker.analytics import ExpenseAggregator
from expense_tracker.audit import AuditLogger, configure_logging
from expense_tracker.config import Settings, get_settings
from expense_tracker.models.analytics import MonthlyReport
from expense_tracker.models.rates import RefreshResult
from expense_tracker.models.transaction import Transaction, YearMonth
from expense_tracker.rates import CurrencyConverter, RateResolver
from expense_tracker.services.rates import RemoteRateSource
from expense_tracker.services.settings import InMemorySettingsProvider, SettingsProvider
from expense_tracker.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryRateCacheStorage,
    InMemoryTransactionStorage,
    RateCacheStorageInterface,
    SQLiteAuditStorage,
    SQLiteDatabase,
    SQLiteRateCacheStorage,
    SQLiteTransactionStorage,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class ExpenseTracker:
    """
    Application facade over storage, rates and analytics.

    Flow for a report:
    1. Load the transactions of the month and the month before
    2. Convert them to the preferred base currency (optional)
    3. Aggregate both months
    4. Compute the month-over-month change

    Transactions whose currency cannot be converted are left out of the
    totals and listed on the report.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        rate_storage: RateCacheStorageInterface,
        settings_provider: SettingsProvider,
        remote_source: Optional[RemoteRateSource] = None,
        audit_logger: Optional[AuditLogger] = None,
        aggregator: Optional[ExpenseAggregator] = None,
        resolver: Optional[RateResolver] = None,
        database: Optional[SQLiteDatabase] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._transactions = transaction_storage
        self._rates = rate_storage
        self._settings = settings_provider
        self._audit_logger = audit_logger or AuditLogger()  # Local-only logging
        self._aggregator = aggregator or ExpenseAggregator()
        self._resolver = resolver or RateResolver(
            cache=rate_storage,
            settings=settings_provider,
            remote=remote_source,
            audit_logger=self._audit_logger,
        )
        self._converter = CurrencyConverter(self._resolver, settings_provider)

        # Owned resources, released by aclose()
        self._database = database
        self._http_client = http_client

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "ExpenseTracker":
        """
        Factory that builds every component from configuration.

        The storage backend comes from STORAGE_BACKEND: "sqlite" persists
        to STORAGE_SQLITE_PATH, "memory" keeps everything in process.
        """
        settings = settings or get_settings()
        configure_logging("DEBUG" if settings.app.debug_mode else settings.app.log_level)

        database = None
        if settings.storage.backend == "sqlite":
            database = SQLiteDatabase(settings.storage.sqlite_path)
            transaction_storage: TransactionStorageInterface = SQLiteTransactionStorage(database)
            rate_storage: RateCacheStorageInterface = SQLiteRateCacheStorage(database)
            audit_storage: AuditStorageInterface = SQLiteAuditStorage(database)
        else:
            transaction_storage = InMemoryTransactionStorage()
            rate_storage = InMemoryRateCacheStorage()
            audit_storage = InMemoryAuditStorage()

        http_client = httpx.AsyncClient(timeout=settings.exchange_rate.timeout_seconds)

        logger.info(
            "expense_tracker_created",
            environment=settings.app.app_environment,
            storage_backend=settings.storage.backend,
            base_currency=settings.app.base_currency,
        )
        return cls(
            transaction_storage=transaction_storage,
            rate_storage=rate_storage,
            settings_provider=InMemorySettingsProvider(settings=settings),
            remote_source=RemoteRateSource(client=http_client),
            audit_logger=AuditLogger(audit_storage),
            database=database,
            http_client=http_client,
        )

    @property
    def resolver(self) -> RateResolver:
        return self._resolver

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    @property
    def aggregator(self) -> ExpenseAggregator:
        return self._aggregator

    @property
    def settings(self) -> SettingsProvider:
        return self._settings

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def startup(self) -> int:
        """
        Run startup maintenance: drop rates past the retention window.

        Returns:
            Number of cached rates pruned
        """
        return await self._resolver.prune_older_than()

    async def aclose(self) -> None:
        """Release the HTTP client and the database connection."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        if self._database is not None:
            await self._database.run(self._database.close)
            self._database = None

    async def __aenter__(self) -> "ExpenseTracker":
        await self.startup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Store a new transaction.

        Raises:
            DuplicateError: A transaction with this id already exists
        """
        await self._transactions.insert(transaction)
        await self._audit_logger.log_transaction_saved(transaction)
        return transaction

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace a stored transaction (same id).

        Raises:
            NotFoundError: No transaction with this id
        """
        await self._transactions.update(transaction)
        await self._audit_logger.log_transaction_updated(transaction)
        return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        deleted = await self._transactions.delete(transaction_id)
        if deleted:
            await self._audit_logger.log_transaction_deleted(transaction_id)
        return deleted

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return await self._transactions.get_by_id(transaction_id)

    async def list_transactions(self) -> list[Transaction]:
        """All transactions, newest first."""
        return await self._transactions.get_all()

    # =========================================================================
    # RATES
    # =========================================================================

    async def refresh_rates(self, base_currency: Optional[str] = None) -> RefreshResult:
        """Fetch fresh rates for a base (the preferred base by default)."""
        return await self._resolver.refresh(base_currency)

    async def refresh_rates_if_stale(self) -> Optional[RefreshResult]:
        """
        Refresh the preferred base's rates when they are older than the
        refresh interval. Meant to be called periodically by the host app.

        Returns:
            The refresh outcome, or None when nothing needed refreshing
        """
        return await self._resolver.refresh_if_stale()

    # =========================================================================
    # REPORTS
    # =========================================================================

    async def monthly_report(
        self,
        month: Union[YearMonth, str],
        convert: bool = True,
    ) -> MonthlyReport:
        """
        Aggregate a month and compare it with the month before.

        Args:
            month: YearMonth or "YYYY-MM"
            convert: Convert every amount to the preferred base currency
                     first. With False, amounts are summed as stored.
        """
        if isinstance(month, str):
            month = YearMonth.parse(month)

        previous_month = month.previous()
        transactions = await self._transactions.list_by_date_range(
            datetime.combine(previous_month.first_day, time.min),
            datetime.combine(month.last_day, time.max),
        )

        base_currency = None
        unconverted: list[Transaction] = []
        if convert:
            base_currency = await self._settings.get_base_currency()
            transactions, unconverted = await self._converter.to_base_currency(
                transactions, base_currency
            )

        current, previous, change = self._aggregator.get_month_over_month(
            transactions, month
        )

        report = MonthlyReport(
            base_currency=base_currency,
            aggregate=current,
            previous_total=previous.total_expenses,
            month_over_month_change=change,
            unconverted_transaction_ids=[tx.id for tx in unconverted],
        )

        await self._audit_logger.log_report_generated(
            month=str(month),
            transaction_count=current.transaction_count,
            unconverted=len(unconverted),
            base_currency=base_currency,
        )
        return report
