"""
Integration tests for ExpenseTracker

Real in-memory stores and a fake remote source wired together.
"""

from datetime import datetime, timedelta

import pytest

from conftest import NOW, TODAY, make_rate, make_tx
from expense_tracker.audit import AuditLogger
from expense_tracker.config import get_settings
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.transaction import ExpenseCategory, YearMonth
from expense_tracker.orchestrator import ExpenseTracker
from expense_tracker.rates import RateResolver
from expense_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryRateCacheStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    SQLiteDatabase,
)
from test_rate_resolver import FakeRemote


NOVEMBER = YearMonth(year=2024, month=11)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def tracker(settings_provider, clock, audit_storage):
    rate_cache = InMemoryRateCacheStorage()
    audit_logger = AuditLogger(audit_storage)
    resolver = RateResolver(
        cache=rate_cache,
        settings=settings_provider,
        remote=FakeRemote(rates={"USD": 1.0, "EUR": 0.5}),
        audit_logger=audit_logger,
        clock=clock,
    )
    return ExpenseTracker(
        transaction_storage=InMemoryTransactionStorage(),
        rate_storage=rate_cache,
        settings_provider=settings_provider,
        audit_logger=audit_logger,
        resolver=resolver,
    )


class TestTransactions:
    """Tests for transaction edits through the tracker."""

    @pytest.mark.asyncio
    async def test_add_update_delete_are_audited(self, tracker, audit_storage):
        """Each edit is stored and leaves an audit event."""
        tx = make_tx(10, datetime(2024, 11, 3, 9, 0), tx_id="t1")

        await tracker.add_transaction(tx)
        await tracker.update_transaction(tx.model_copy(update={"amount": 12.0}))
        assert (await tracker.get_transaction("t1")).amount == 12.0
        assert await tracker.delete_transaction("t1") is True

        events = [e.event_type for e in await audit_storage.get_recent_events()]
        assert events == [
            AuditEventType.TRANSACTION_DELETED,
            AuditEventType.TRANSACTION_UPDATED,
            AuditEventType.TRANSACTION_SAVED,
        ]
        assert await tracker.list_transactions() == []

    @pytest.mark.asyncio
    async def test_update_unknown_transaction(self, tracker):
        """Updating something that was never added fails."""
        with pytest.raises(NotFoundError):
            await tracker.update_transaction(make_tx(1, datetime(2024, 11, 3, 9, 0)))

    @pytest.mark.asyncio
    async def test_delete_unknown_transaction(self, tracker, audit_storage):
        """Deleting nothing is not audited."""
        assert await tracker.delete_transaction("missing") is False
        assert await audit_storage.get_recent_events() == []


class TestRates:
    """Tests for rate maintenance through the tracker."""

    @pytest.mark.asyncio
    async def test_startup_prunes_old_rates(self, tracker):
        """Rates past the retention window are dropped at startup."""
        await tracker.resolver._cache.upsert_many([
            make_rate("USD", "EUR", 0.9, on=TODAY - timedelta(days=45)),
            make_rate("USD", "EUR", 0.9, on=TODAY),
        ])

        assert await tracker.startup() == 1

    @pytest.mark.asyncio
    async def test_refresh_rates_if_stale(self, tracker):
        """First call refreshes, second finds the cache fresh."""
        first = await tracker.refresh_rates_if_stale()
        second = await tracker.refresh_rates_if_stale()

        assert first is not None and first.success
        assert second is None


class TestMonthlyReport:
    """Tests for the monthly report flow."""

    @pytest.mark.asyncio
    async def test_report_converts_to_base_currency(self, tracker):
        """Foreign amounts are restated in the preferred base currency."""
        await tracker.refresh_rates("USD")
        await tracker.add_transaction(make_tx(50, datetime(2024, 11, 1, 9, 0), currency="USD"))
        await tracker.add_transaction(make_tx(25, datetime(2024, 11, 2, 9, 0), currency="EUR"))
        await tracker.add_transaction(make_tx(100, datetime(2024, 10, 5, 9, 0), currency="USD"))

        report = await tracker.monthly_report(NOVEMBER)

        assert report.base_currency == "USD"
        assert report.aggregate.total_expenses == pytest.approx(100.0)
        assert report.previous_total == pytest.approx(100.0)
        assert report.month_over_month_change == pytest.approx(0.0)
        assert report.is_complete

    @pytest.mark.asyncio
    async def test_unconvertible_transactions_listed(self, tracker):
        """A transaction without a rate is left out and named."""
        await tracker.add_transaction(make_tx(50, datetime(2024, 11, 1, 9, 0), currency="USD"))
        await tracker.add_transaction(
            make_tx(900, datetime(2024, 11, 2, 9, 0), currency="INR", tx_id="inr")
        )

        report = await tracker.monthly_report("2024-11")

        assert report.aggregate.total_expenses == pytest.approx(50.0)
        assert report.unconverted_transaction_ids == ["inr"]
        assert not report.is_complete

    @pytest.mark.asyncio
    async def test_report_without_conversion(self, tracker):
        """With convert=False amounts are summed as stored."""
        await tracker.add_transaction(make_tx(50, datetime(2024, 11, 1, 9, 0), currency="USD"))
        await tracker.add_transaction(make_tx(900, datetime(2024, 11, 2, 9, 0), currency="INR"))

        report = await tracker.monthly_report(NOVEMBER, convert=False)

        assert report.base_currency is None
        assert report.aggregate.total_expenses == pytest.approx(950.0)
        assert report.month_over_month_change is None

    @pytest.mark.asyncio
    async def test_report_is_audited(self, tracker, audit_storage):
        """Generating a report leaves an audit event."""
        await tracker.add_transaction(
            make_tx(10, datetime(2024, 11, 1, 9, 0), ExpenseCategory.UTILITIES)
        )
        await tracker.monthly_report(NOVEMBER)

        latest = (await audit_storage.get_recent_events())[0]
        assert latest.event_type == AuditEventType.REPORT_GENERATED
        assert latest.entity_id == "2024-11"


class TestCreate:
    """Tests for building the tracker from configuration."""

    @pytest.mark.asyncio
    async def test_create_with_sqlite(self, monkeypatch, tmp_path):
        """The factory wires SQLite storage and closes it cleanly."""
        monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("STORAGE_SQLITE_PATH", str(tmp_path / "tracker.db"))
        get_settings.cache_clear()
        try:
            async with ExpenseTracker.create() as tracker:
                tx = make_tx(10, NOW)
                await tracker.add_transaction(tx)
                assert await tracker.get_transaction(tx.id) == tx
                assert isinstance(tracker._database, SQLiteDatabase)
            assert tracker._database is None
        finally:
            get_settings.cache_clear()

    @pytest.mark.asyncio
    async def test_create_in_memory(self, monkeypatch):
        """STORAGE_BACKEND=memory needs no database."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("BASE_CURRENCY", "eur")
        get_settings.cache_clear()
        try:
            tracker = ExpenseTracker.create()
            assert await tracker.settings.get_base_currency() == "EUR"
            assert tracker._database is None
            await tracker.aclose()
        finally:
            get_settings.cache_clear()

    @pytest.mark.asyncio
    async def test_debug_mode_forces_debug_logging(self, monkeypatch):
        """DEBUG_MODE overrides LOG_LEVEL."""
        levels = []
        monkeypatch.setattr("expense_tracker.orchestrator.configure_logging", levels.append)
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("DEBUG_MODE", "true")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        get_settings.cache_clear()
        try:
            tracker = ExpenseTracker.create()
            await tracker.aclose()
        finally:
            get_settings.cache_clear()

        assert levels == ["DEBUG"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
