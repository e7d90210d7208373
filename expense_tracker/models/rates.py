"""
Exchange Rate Models for Expense Tracker

A rate set is fetched for one base currency in a single call and cached
locally, one row per (base, target, date). Cross rates between any two
currencies are computed from those rows.

DESIGN DECISION: The composite key is a tuple, not a concatenated string
like "USD_EUR_2024-11-01", so nothing ever has to be parsed back out of it.
"""

import datetime as dt
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_tracker.config import normalize_currency_code


class RateKey(NamedTuple):
    """Composite primary key of a cached rate."""
    base_currency: str
    target_currency: str
    date: dt.date


class CachedRate(BaseModel):
    """
    One observed exchange rate: 1 base unit = rate target units.

    last_fetched_at is kept as the ISO-8601 string written by the refresh,
    exactly as stored. A value that no longer parses marks the cache stale.
    """
    model_config = ConfigDict(frozen=True)

    base_currency: str = Field(
        ...,
        description="Currency the rate is denominated from"
    )
    target_currency: str = Field(
        ...,
        description="Currency the rate converts into"
    )
    rate: float = Field(
        ...,
        ge=0,
        description="Multiplier from base to target"
    )
    date: dt.date = Field(
        ...,
        description="Calendar day the rate applies to"
    )
    last_fetched_at: str = Field(
        ...,
        description="ISO-8601 local timestamp of the cache write"
    )

    @field_validator('base_currency', 'target_currency')
    @classmethod
    def validate_codes(cls, v: str) -> str:
        return normalize_currency_code(v)

    @property
    def key(self) -> RateKey:
        return RateKey(self.base_currency, self.target_currency, self.date)

    def fetched_at(self) -> Optional[dt.datetime]:
        """Parsed last_fetched_at, or None if it is not a valid timestamp."""
        try:
            return dt.datetime.fromisoformat(self.last_fetched_at)
        except (TypeError, ValueError):
            return None


class LatestRates(BaseModel):
    """
    Payload of one remote fetch: every rate for a single base currency.
    """
    model_config = ConfigDict(frozen=True)

    base_currency: str
    as_of: Optional[str] = Field(
        default=None,
        description="Provider's last-update time, as reported"
    )
    rates: dict[str, float] = Field(
        default_factory=dict,
        description="Target currency code -> rate"
    )

    @field_validator('base_currency')
    @classmethod
    def validate_base(cls, v: str) -> str:
        return normalize_currency_code(v)


class RefreshErrorType(str, Enum):
    """Why a refresh failed."""
    INVALID_INPUT = "invalid_input"    # Rejected before any network call
    REMOTE_FAILURE = "remote_failure"  # HTTP, transport, timeout or payload error


class RefreshResult(BaseModel):
    """
    Outcome of refreshing the cached rates for one base currency.

    A failed refresh never touches the cache.
    """

    base_currency: str
    success: bool
    rates_stored: int = Field(default=0, ge=0)
    refreshed_at: Optional[dt.datetime] = None
    error_type: Optional[RefreshErrorType] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, base_currency: str, rates_stored: int, refreshed_at: dt.datetime) -> "RefreshResult":
        return cls(
            base_currency=base_currency,
            success=True,
            rates_stored=rates_stored,
            refreshed_at=refreshed_at,
        )

    @classmethod
    def failure(
        cls,
        base_currency: str,
        error_type: RefreshErrorType,
        error_message: str,
    ) -> "RefreshResult":
        return cls(
            base_currency=base_currency,
            success=False,
            error_type=error_type,
            error_message=error_message,
        )
