"""Remote exchange rate services."""

from expense_tracker.services.rates.remote import (
    ExchangeRateApiResponse,
    InvalidInputError,
    RateSourceError,
    RemoteFailureError,
    RemoteRateSource,
)

__all__ = [
    "ExchangeRateApiResponse",
    "InvalidInputError",
    "RateSourceError",
    "RemoteFailureError",
    "RemoteRateSource",
]
