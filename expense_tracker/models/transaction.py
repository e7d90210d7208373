"""
Core Transaction Models for Expense Tracker

These models define the schemas for the expenses a user records.
They are designed to:
1. Enforce type safety at runtime (entry-point validation)
2. Be immutable - an edit is a new value with the same id
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are plain floats. Conversion and aggregation use
double arithmetic; exact decimal money handling is not a goal here.
"""

import calendar
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_tracker.config import normalize_currency_code


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: A small fixed set keeps the per-day stacked breakdown
    readable and makes category totals comparable month to month.
    """
    FOOD = "food"
    TRAVEL = "travel"
    UTILITIES = "utilities"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_display_name(cls, name: str) -> "ExpenseCategory":
        """Case-insensitive lookup; unknown names map to OTHER."""
        for category in cls:
            if category.display_name.lower() == (name or "").strip().lower():
                return category
        return cls.OTHER


class Currency(Enum):
    """
    Currencies offered for selection, with display metadata.

    Transactions and cached rates store plain ISO codes; this enum is only
    used for formatting and for the list of selectable currencies.
    """
    USD = ("USD", "$", "US Dollar")
    EUR = ("EUR", "€", "Euro")
    GBP = ("GBP", "£", "British Pound")
    JPY = ("JPY", "¥", "Japanese Yen")
    CHF = ("CHF", "Fr", "Swiss Franc")
    CAD = ("CAD", "C$", "Canadian Dollar")
    AUD = ("AUD", "A$", "Australian Dollar")
    CNY = ("CNY", "¥", "Chinese Yuan")
    INR = ("INR", "₹", "Indian Rupee")
    SEK = ("SEK", "kr", "Swedish Krona")
    NOK = ("NOK", "kr", "Norwegian Krone")
    DKK = ("DKK", "kr", "Danish Krone")

    def __init__(self, code: str, symbol: str, display_name: str):
        self.code = code
        self.symbol = symbol
        self.display_name = display_name

    @classmethod
    def from_code(cls, code: str) -> "Currency":
        """Case-insensitive lookup; unknown codes map to USD."""
        for currency in cls:
            if currency.code == (code or "").strip().upper():
                return currency
        return cls.USD

    def format(self, amount: float) -> str:
        """Format an amount, e.g. "$32.50" or "¥1200"."""
        if self in (Currency.JPY, Currency.CNY):
            return f"{self.symbol}{int(amount)}"
        return f"{self.symbol}{amount:.2f}"


# =============================================================================
# CALENDAR MONTH
# =============================================================================

class YearMonth(BaseModel):
    """A calendar month, e.g. 2024-11."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def of(cls, value: date) -> "YearMonth":
        """Month containing a date (or datetime)."""
        return cls(year=value.year, month=value.month)

    @classmethod
    def parse(cls, value: str) -> "YearMonth":
        """Parse a "YYYY-MM" string."""
        year, _, month = value.strip().partition("-")
        return cls(year=int(year), month=int(month))

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def length_of_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.length_of_month)

    def contains(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month

    def previous(self) -> "YearMonth":
        return YearMonth.of(self.first_day - timedelta(days=1))

    def next(self) -> "YearMonth":
        return YearMonth.of(self.last_day + timedelta(days=1))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single recorded expense.

    Immutable: editing a transaction means storing a new value with the same
    id. Timestamps are local wall-clock times; no timezone conversion is
    ever applied.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Unique transaction ID"
    )
    amount: float = Field(
        ...,
        ge=0,
        description="Amount in the transaction's own currency"
    )
    currency: str = Field(
        ...,
        description="ISO 4217 currency code"
    )
    category: ExpenseCategory = Field(
        ...,
        description="Expense category"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Brief description of the expense"
    )
    timestamp: datetime = Field(
        ...,
        description="Local date and time the expense was made"
    )

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency_code(v)

    @field_validator('timestamp')
    @classmethod
    def strip_timezone(cls, v: datetime) -> datetime:
        """Local timestamps only; an aware datetime keeps its wall-clock time."""
        return v.replace(tzinfo=None)

    @property
    def transaction_date(self) -> date:
        """Calendar day of the expense."""
        return self.timestamp.date()

    @property
    def formatted_amount(self) -> str:
        return Currency.from_code(self.currency).format(self.amount)


class ConvertedTransaction(BaseModel):
    """
    A transaction paired with its amount in a base currency.

    converted_amount is None when no exchange rate could be resolved.
    """
    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    converted_amount: Optional[float] = None
    base_currency: str

    @property
    def is_converted(self) -> bool:
        return self.converted_amount is not None
