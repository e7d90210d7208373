"""
Tests for the storage backends

Every test runs against both the in-memory stores and SQLite (":memory:").
"""

from datetime import date, datetime
from uuid import uuid4

import pytest

from conftest import make_rate, make_tx
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.transaction import ExpenseCategory
from expense_tracker.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryRateCacheStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    SQLiteAuditStorage,
    SQLiteDatabase,
    SQLiteRateCacheStorage,
    SQLiteTransactionStorage,
)


@pytest.fixture(params=["memory", "sqlite"])
def stores(request):
    if request.param == "memory":
        yield InMemoryTransactionStorage(), InMemoryRateCacheStorage(), InMemoryAuditStorage()
        return

    db = SQLiteDatabase(":memory:")
    yield SQLiteTransactionStorage(db), SQLiteRateCacheStorage(db), SQLiteAuditStorage(db)
    db.close()


@pytest.fixture
def transactions(stores):
    return stores[0]


@pytest.fixture
def rates(stores):
    return stores[1]


@pytest.fixture
def audit(stores):
    return stores[2]


class TestTransactionStorage:
    """Tests for transaction CRUD."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, transactions):
        """A stored transaction reads back equal."""
        tx = make_tx(12.5, datetime(2024, 11, 3, 9, 30), description="Coffee", currency="EUR")
        await transactions.insert(tx)

        assert await transactions.get_by_id(tx.id) == tx
        assert await transactions.count() == 1

    @pytest.mark.asyncio
    async def test_get_missing(self, transactions):
        """Unknown ids return None."""
        assert await transactions.get_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_insert_duplicate_id(self, transactions):
        """Ids are unique."""
        tx = make_tx(1, datetime(2024, 11, 3, 9, 30), tx_id="same")
        await transactions.insert(tx)

        with pytest.raises(DuplicateError):
            await transactions.insert(tx)

    @pytest.mark.asyncio
    async def test_get_all_newest_first(self, transactions):
        """get_all orders by timestamp, newest first."""
        older = make_tx(1, datetime(2024, 11, 1, 9, 0), tx_id="older")
        newer = make_tx(2, datetime(2024, 11, 2, 9, 0), tx_id="newer")
        await transactions.insert_many([older, newer])

        assert [t.id for t in await transactions.get_all()] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_update_replaces(self, transactions):
        """An edit is a full replacement under the same id."""
        tx = make_tx(10, datetime(2024, 11, 3, 9, 30), tx_id="t1")
        await transactions.insert(tx)

        edited = tx.model_copy(update={"amount": 25.0, "category": ExpenseCategory.TRAVEL})
        await transactions.update(edited)

        stored = await transactions.get_by_id("t1")
        assert stored.amount == 25.0
        assert stored.category == ExpenseCategory.TRAVEL

    @pytest.mark.asyncio
    async def test_update_missing(self, transactions):
        """Updating an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await transactions.update(make_tx(1, datetime(2024, 11, 3, 9, 30)))

    @pytest.mark.asyncio
    async def test_delete(self, transactions):
        """delete reports whether anything was removed."""
        tx = make_tx(1, datetime(2024, 11, 3, 9, 30))
        await transactions.insert(tx)

        assert await transactions.delete(tx.id) is True
        assert await transactions.delete(tx.id) is False
        assert await transactions.count() == 0

    @pytest.mark.asyncio
    async def test_list_filters(self, transactions):
        """Category, date range and amount range filters."""
        await transactions.insert_many([
            make_tx(5, datetime(2024, 10, 31, 23, 0), ExpenseCategory.FOOD, tx_id="a"),
            make_tx(50, datetime(2024, 11, 1, 0, 0), ExpenseCategory.TRAVEL, tx_id="b"),
            make_tx(500, datetime(2024, 11, 30, 22, 0), ExpenseCategory.FOOD, tx_id="c"),
        ])

        food = await transactions.list_by_category(ExpenseCategory.FOOD)
        assert {t.id for t in food} == {"a", "c"}

        november = await transactions.list_by_date_range(
            datetime(2024, 11, 1), datetime(2024, 11, 30, 23, 59, 59)
        )
        assert [t.id for t in november] == ["c", "b"]

        mid = await transactions.list_by_amount_range(10, 100)
        assert [t.id for t in mid] == ["b"]


class TestRateCacheStorage:
    """Tests for the rate cache."""

    @pytest.mark.asyncio
    async def test_get_exact_and_latest(self, rates):
        """A date gets that day; no date gets the latest day."""
        await rates.upsert_many([
            make_rate("USD", "EUR", 0.90, on=date(2024, 11, 1)),
            make_rate("USD", "EUR", 0.95, on=date(2024, 11, 10)),
        ])

        assert (await rates.get("USD", "EUR", date(2024, 11, 1))).rate == 0.90
        assert (await rates.get("USD", "EUR")).rate == 0.95
        assert await rates.get("USD", "EUR", date(2024, 11, 5)) is None
        assert await rates.get("EUR", "USD") is None

    @pytest.mark.asyncio
    async def test_upsert_replaces_same_key(self, rates):
        """At most one rate per (base, target, date)."""
        await rates.upsert_many([make_rate("USD", "EUR", 0.90)])
        await rates.upsert_many([make_rate("USD", "EUR", 0.91)])

        assert await rates.count() == 1
        assert (await rates.get("USD", "EUR")).rate == 0.91

    @pytest.mark.asyncio
    async def test_delete_older_than_is_strict(self, rates):
        """Rows dated on the cutoff survive."""
        await rates.upsert_many([
            make_rate("USD", "EUR", 0.9, on=date(2024, 10, 15)),
            make_rate("USD", "EUR", 0.9, on=date(2024, 10, 16)),
        ])

        assert await rates.delete_older_than(date(2024, 10, 16)) == 1
        assert await rates.get("USD", "EUR", date(2024, 10, 16)) is not None

    @pytest.mark.asyncio
    async def test_distinct_bases_sorted(self, rates):
        """Bases are reported alphabetically, once each."""
        await rates.upsert_many([
            make_rate("USD", "EUR", 0.9),
            make_rate("EUR", "USD", 1.1),
            make_rate("USD", "GBP", 0.8),
        ])
        assert await rates.distinct_base_currencies() == ["EUR", "USD"]

    @pytest.mark.asyncio
    async def test_most_recent_by_base(self, rates):
        """The greatest fetch time wins."""
        await rates.upsert_many([
            make_rate("USD", "EUR", 0.9, fetched_at="2024-11-14T08:00:00"),
            make_rate("USD", "GBP", 0.8, fetched_at="2024-11-15T08:00:00"),
        ])
        latest = await rates.most_recent_by_base("USD")
        assert latest.target_currency == "GBP"
        assert await rates.most_recent_by_base("JPY") is None

    @pytest.mark.asyncio
    async def test_rates_for_base(self, rates):
        """All targets of the latest day, sorted by code."""
        await rates.upsert_many([
            make_rate("USD", "GBP", 0.8, on=date(2024, 11, 1)),
            make_rate("USD", "JPY", 150.0),
            make_rate("USD", "EUR", 0.9),
        ])

        latest = await rates.rates_for_base("USD")
        assert [r.target_currency for r in latest] == ["EUR", "JPY"]

        earlier = await rates.rates_for_base("USD", date(2024, 11, 1))
        assert [r.target_currency for r in earlier] == ["GBP"]


class TestAuditStorage:
    """Tests for the audit trail."""

    @pytest.mark.asyncio
    async def test_append_and_read_back(self, audit):
        """Events round-trip with their details."""
        correlation_id = uuid4()
        event = AuditEventBuilder.rates_refreshed("USD", 160, correlation_id)

        assert await audit.append_event(event) is True

        [stored] = await audit.get_events_by_correlation_id(correlation_id)
        assert stored.event_id == event.event_id
        assert stored.details["rates_stored"] == 160
        assert (await audit.get_recent_events(limit=1))[0].event_id == event.event_id


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
