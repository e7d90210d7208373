"""Exchange rate resolution and currency conversion."""

from expense_tracker.rates.converter import CurrencyConverter
from expense_tracker.rates.resolver import RateResolver, RateStrategy

__all__ = [
    "CurrencyConverter",
    "RateResolver",
    "RateStrategy",
]
