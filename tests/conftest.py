"""Shared fixtures: fixed clock, sample transactions and rates."""

from datetime import date, datetime
from typing import Optional

import pytest

from expense_tracker.models.rates import CachedRate
from expense_tracker.models.transaction import ExpenseCategory, Transaction
from expense_tracker.rates import RateResolver
from expense_tracker.services.settings import InMemorySettingsProvider
from expense_tracker.services.storage import InMemoryRateCacheStorage


NOW = datetime(2024, 11, 15, 12, 0, 0)
TODAY = NOW.date()


def make_rate(
    base: str,
    target: str,
    rate: float,
    on: date = TODAY,
    fetched_at: Optional[str] = None,
) -> CachedRate:
    return CachedRate(
        base_currency=base,
        target_currency=target,
        rate=rate,
        date=on,
        last_fetched_at=fetched_at or datetime.combine(on, NOW.time()).isoformat(),
    )


def make_tx(
    amount: float,
    when: datetime,
    category: ExpenseCategory = ExpenseCategory.FOOD,
    currency: str = "USD",
    description: str = "",
    tx_id: Optional[str] = None,
) -> Transaction:
    fields = dict(
        amount=amount,
        currency=currency,
        category=category,
        description=description,
        timestamp=when,
    )
    if tx_id:
        fields["id"] = tx_id
    return Transaction(**fields)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def settings_provider():
    return InMemorySettingsProvider(
        base_currency="USD",
        api_key="test-key",
        api_base_url="https://rates.test/v6",
    )


@pytest.fixture
def rate_cache():
    return InMemoryRateCacheStorage()


@pytest.fixture
def resolver(rate_cache, settings_provider, clock):
    return RateResolver(
        cache=rate_cache,
        settings=settings_provider,
        clock=clock,
        refresh_interval_hours=24,
        retention_days=30,
    )
